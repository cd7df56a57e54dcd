from pydantic import BaseModel
from uuid import UUID
from datetime import datetime
from typing import Optional

from app.schemas.rating import RatingResponse

class DesignResponse(BaseModel):
    id: UUID
    designer_id: UUID
    title: str
    description: Optional[str] = None
    image_url: str
    created_at: datetime
    is_active: bool

    model_config = {"from_attributes": True}

class DesignPairResponse(BaseModel):
    id: UUID
    designer_id: UUID
    design_a_id: UUID
    design_b_id: UUID
    title: str
    description: Optional[str] = None
    created_at: datetime
    is_active: bool
    design_a: DesignResponse
    design_b: DesignResponse

    model_config = {"from_attributes": True}

class DesignPairWithRatings(DesignPairResponse):
    ratings: list[RatingResponse] = []

class DeletePairResponse(BaseModel):
    message: str
    pair_id: UUID
    failed_steps: list[str] = []
