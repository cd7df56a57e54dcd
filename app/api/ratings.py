"""
Pairwise — Ratings API

One vote per tester per pair.  ``GET`` tells the client whether to open
the voting view or the read-only "already reviewed" view.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_voting_service, raise_http
from app.database import get_db
from app.models.rating import Rating
from app.models.user import User
from app.schemas.rating import RatingCreate, RatingResponse, ReviewStatus
from app.services.errors import PairwiseError
from app.services.voting_service import VotingService

logger = structlog.get_logger("pairwise.api.ratings")

router = APIRouter()


@router.get(
    "/{pair_id}/rating",
    response_model=ReviewStatus,
    summary="Has the caller already reviewed this pair?",
)
async def get_review_status(
    pair_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    voting: VotingService = Depends(get_voting_service),
) -> ReviewStatus:
    rating = await voting.get_user_rating(user.id, pair_id, db)
    return ReviewStatus(
        has_voted=rating is not None,
        rating=RatingResponse.model_validate(rating) if rating is not None else None,
    )


@router.post(
    "/{pair_id}/rating",
    response_model=RatingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Vote for Variation A or B",
)
async def submit_vote(
    pair_id: uuid.UUID,
    payload: RatingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    voting: VotingService = Depends(get_voting_service),
) -> Rating:
    """Record the caller's vote.  A second vote for the same pair is
    answered with 409 and the stored vote is left unchanged."""
    try:
        return await voting.submit_vote(
            tester_id=user.id,
            pair_id=pair_id,
            chosen_design_id=payload.chosen_design_id,
            feedback=payload.feedback,
            db_session=db,
        )
    except PairwiseError as exc:
        raise_http(exc)
