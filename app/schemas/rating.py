from pydantic import BaseModel, Field
from uuid import UUID
from datetime import datetime
from typing import Optional

class RatingCreate(BaseModel):
    chosen_design_id: UUID
    feedback: Optional[str] = Field(None, max_length=5000)

class RatingResponse(BaseModel):
    id: UUID
    tester_id: UUID
    design_pair_id: UUID
    chosen_design_id: UUID
    feedback: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}

class ReviewStatus(BaseModel):
    has_voted: bool
    rating: Optional[RatingResponse] = None

class VotingStats(BaseModel):
    design_a_votes: int
    design_b_votes: int
    total_votes: int
    design_a_percentage: int
    design_b_percentage: int
