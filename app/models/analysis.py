"""
Pairwise — Persisted AI analysis (latest judgment per design pair).
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

# JSONB on Postgres, plain JSON elsewhere.
_StringList = JSON().with_variant(JSONB(), "postgresql")


class AIAnalysisRecord(Base):
    __tablename__ = "ai_analysis"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    design_pair_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("design_pairs.id"),
        unique=True,
        nullable=False,
    )
    recommended_design: Mapped[str] = mapped_column(
        String, nullable=False, comment="A / B / tie"
    )
    confidence: Mapped[int] = mapped_column(Integer, nullable=False, comment="0-100")
    reasoning: Mapped[str] = mapped_column(Text, nullable=False)
    strengths_design_a: Mapped[list] = mapped_column(_StringList, nullable=False)
    strengths_design_b: Mapped[list] = mapped_column(_StringList, nullable=False)
    weaknesses_design_a: Mapped[list] = mapped_column(_StringList, nullable=False)
    weaknesses_design_b: Mapped[list] = mapped_column(_StringList, nullable=False)
    design_principles: Mapped[list] = mapped_column(_StringList, nullable=False)
    user_experience: Mapped[str] = mapped_column(Text, nullable=False)
    visual_hierarchy: Mapped[str] = mapped_column(Text, nullable=False)
    accessibility: Mapped[str] = mapped_column(Text, nullable=False)
    model_used: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<AIAnalysisRecord pair={self.design_pair_id} "
            f"recommended={self.recommended_design!r} confidence={self.confidence}>"
        )
