from pydantic import BaseModel, ConfigDict, Field
from uuid import UUID
from datetime import datetime
from typing import Literal, Optional

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

class PerDesign(_CamelModel):
    design_a: list[str] = Field(default_factory=list, alias="designA")
    design_b: list[str] = Field(default_factory=list, alias="designB")

class AIAnalysis(_CamelModel):
    """Comparative judgment returned by the AI bridge."""

    recommended_design: Literal["A", "B", "tie"] = Field(alias="recommendedDesign")
    confidence: int = Field(ge=0, le=100)
    reasoning: str
    strengths: PerDesign
    weaknesses: PerDesign
    design_principles: list[str] = Field(default_factory=list, alias="designPrinciples")
    user_experience: str = Field("", alias="userExperience")
    visual_hierarchy: str = Field("", alias="visualHierarchy")
    accessibility: str = ""

class AnalysisRequest(_CamelModel):
    design_a_url: Optional[str] = Field(None, alias="designAUrl")
    design_b_url: Optional[str] = Field(None, alias="designBUrl")
    title: Optional[str] = None
    description: Optional[str] = None
    type: str = "pair-analysis"

class StoredAnalysisResponse(BaseModel):
    design_pair_id: UUID
    analysis: AIAnalysis
    model_used: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
