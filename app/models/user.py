"""
Pairwise — User model.

Rows mirror identities owned by the external auth provider; ``id`` is the
provider's subject claim.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

USER_TYPES = ("designer", "tester")


class User(Base):
    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(
        String, unique=True, index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    user_type: Mapped[str] = mapped_column(
        String, default="tester", nullable=False, comment="designer / tester"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default="true", nullable=False
    )

    # ── Relationships ──────────────────────────────────────────────
    design_pairs: Mapped[list["DesignPair"]] = relationship(
        "DesignPair", back_populates="designer"
    )

    def __repr__(self) -> str:
        return f"<User {self.email!r} id={self.id}>"
