"""
Pairwise — Design and DesignPair models.

Two ``Design`` rows are uploaded together as Variation A/B siblings; the
``DesignPair`` that references them is the unit shown for review.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Design(Base):
    __tablename__ = "designs"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    designer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str] = mapped_column(String, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )

    def __repr__(self) -> str:
        return f"<Design {self.title!r} id={self.id}>"


class DesignPair(Base):
    __tablename__ = "design_pairs"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        CheckConstraint("design_a_id <> design_b_id", name="ck_design_pair_distinct"),
        Index("ix_design_pairs_active_created", "is_active", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    designer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    design_a_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("designs.id"), nullable=False
    )
    design_b_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("designs.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    designer: Mapped["User"] = relationship("User", back_populates="design_pairs")
    design_a: Mapped[Design] = relationship(
        Design, foreign_keys=[design_a_id], lazy="selectin"
    )
    design_b: Mapped[Design] = relationship(
        Design, foreign_keys=[design_b_id], lazy="selectin"
    )
    ratings: Mapped[list["Rating"]] = relationship(
        "Rating", back_populates="design_pair", order_by="Rating.created_at"
    )

    def __repr__(self) -> str:
        return (
            f"<DesignPair {self.title!r} id={self.id} "
            f"a={self.design_a_id} b={self.design_b_id}>"
        )
