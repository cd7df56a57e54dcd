"""
Pairwise — Design Pairs API

Upload, browse, inspect and delete A/B design pairs, and read their vote
tallies.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import (
    get_current_user,
    get_design_service,
    get_voting_service,
    raise_http,
    with_fetch_timeout,
)
from app.database import get_db
from app.models.design import DesignPair
from app.models.user import User
from app.schemas.design import (
    DeletePairResponse,
    DesignPairResponse,
    DesignPairWithRatings,
)
from app.schemas.rating import VotingStats
from app.services.design_service import DesignPairService, ImageUpload
from app.services.errors import PairwiseError
from app.services.voting_service import VotingService

logger = structlog.get_logger("pairwise.api.designs")

router = APIRouter()


async def _read_upload(upload: UploadFile) -> ImageUpload:
    return ImageUpload(
        filename=upload.filename,
        content_type=upload.content_type,
        data=await upload.read(),
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /designs: Upload a design pair
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "",
    response_model=DesignPairResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload two design variations as a pair",
)
async def create_pair(
    title: str = Form(...),
    description: str = Form(...),
    image_a: UploadFile = File(..., description="Variation A image"),
    image_b: UploadFile = File(..., description="Variation B image"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: DesignPairService = Depends(get_design_service),
) -> DesignPair:
    """Store both images and create Design A, Design B and the pair.

    Nothing is left behind when any step fails.
    """
    try:
        return await service.create_pair(
            designer_id=user.id,
            title=title,
            description=description,
            image_a=await _read_upload(image_a),
            image_b=await _read_upload(image_b),
            db_session=db,
        )
    except PairwiseError as exc:
        raise_http(exc)


# ──────────────────────────────────────────────────────────────────────────────
# GET /designs: Pairs open for review
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "",
    response_model=list[DesignPairWithRatings],
    summary="List active design pairs for review",
)
async def list_pairs_for_review(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: DesignPairService = Depends(get_design_service),
) -> list[DesignPair]:
    return await with_fetch_timeout(service.list_pairs_for_review(db))


# ──────────────────────────────────────────────────────────────────────────────
# GET /designs/mine: Caller's own pairs
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/mine",
    response_model=list[DesignPairWithRatings],
    summary="List the caller's active design pairs",
)
async def list_my_pairs(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: DesignPairService = Depends(get_design_service),
) -> list[DesignPair]:
    return await with_fetch_timeout(service.list_pairs_for_owner(user.id, db))


# ──────────────────────────────────────────────────────────────────────────────
# GET /designs/{pair_id}: One pair
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{pair_id}",
    response_model=DesignPairWithRatings,
    summary="Get a design pair with its designs and ratings",
)
async def get_pair(
    pair_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: DesignPairService = Depends(get_design_service),
) -> DesignPair:
    try:
        return await with_fetch_timeout(service.get_pair(pair_id, db))
    except PairwiseError as exc:
        raise_http(exc)


# ──────────────────────────────────────────────────────────────────────────────
# DELETE /designs/{pair_id}: Delete a pair and its dependents
# ──────────────────────────────────────────────────────────────────────────────

@router.delete(
    "/{pair_id}",
    response_model=DeletePairResponse,
    summary="Delete a design pair",
)
async def delete_pair(
    pair_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: DesignPairService = Depends(get_design_service),
) -> DeletePairResponse:
    """Owner-only.  Ratings, stored analysis, the pair and both designs
    are removed in that order; only the pair delete must succeed."""
    try:
        result = await service.delete_pair(pair_id, user.id, db)
    except PairwiseError as exc:
        raise_http(exc)

    return DeletePairResponse(
        message="Design pair deleted successfully",
        pair_id=result.pair_id,
        failed_steps=result.failed_steps,
    )


# ──────────────────────────────────────────────────────────────────────────────
# GET /designs/{pair_id}/stats: Vote tally
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{pair_id}/stats",
    response_model=VotingStats,
    summary="Vote counts and percentages for a pair",
)
async def get_voting_stats(
    pair_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    voting: VotingService = Depends(get_voting_service),
) -> dict:
    try:
        return await with_fetch_timeout(voting.compute_voting_stats(pair_id, db))
    except PairwiseError as exc:
        raise_http(exc)
