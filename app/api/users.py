"""
Pairwise — Users API

The caller's own profile and designer dashboard counts.  Sign-up, sign-in
and sign-out happen at the identity provider.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_design_service, with_fetch_timeout
from app.database import get_db
from app.models.user import User
from app.schemas.user import DesignerStats, UserResponse
from app.services.design_service import DesignPairService

logger = structlog.get_logger("pairwise.api.users")

router = APIRouter()


@router.get("/me", response_model=UserResponse, summary="Current user profile")
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user


@router.get("/me/stats", response_model=DesignerStats, summary="Designer dashboard counts")
async def get_my_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: DesignPairService = Depends(get_design_service),
) -> dict:
    stats = await with_fetch_timeout(service.designer_stats(user.id, db))
    logger.info("designer_stats", user_id=str(user.id), **stats)
    return stats
