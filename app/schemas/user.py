from pydantic import BaseModel
from uuid import UUID
from datetime import datetime

class UserResponse(BaseModel):
    id: UUID
    email: str
    name: str
    user_type: str
    created_at: datetime
    is_active: bool

    model_config = {"from_attributes": True}

class DesignerStats(BaseModel):
    total_designs: int
    total_pairs: int
    total_ratings: int
