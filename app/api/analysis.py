"""
Pairwise — AI Analysis API

Runs the Gemini bridge for a pair (optionally storing the result) and
exposes the stateless bridge call used by the upload preview.  Bridge
failures map to 502 and never touch votes.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_analysis_service, get_current_user, raise_http
from app.database import get_db
from app.models.user import User
from app.schemas.analysis import AnalysisRequest, StoredAnalysisResponse
from app.services.analysis_service import AnalysisService, record_to_analysis
from app.services.errors import PairwiseError

logger = structlog.get_logger("pairwise.api.analysis")

router = APIRouter()


@router.get(
    "/designs/{pair_id}/analysis",
    response_model=StoredAnalysisResponse,
    summary="Latest stored AI analysis for a pair",
)
async def get_stored_analysis(
    pair_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: AnalysisService = Depends(get_analysis_service),
) -> StoredAnalysisResponse:
    record = await service.get_stored_analysis(pair_id, db)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No analysis stored for this design pair.",
        )
    return StoredAnalysisResponse(
        design_pair_id=record.design_pair_id,
        analysis=record_to_analysis(record),
        model_used=record.model_used,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


@router.post(
    "/designs/{pair_id}/analysis",
    summary="Run AI analysis for a pair",
)
async def run_pair_analysis(
    pair_id: uuid.UUID,
    persist: bool = Query(True, description="Store the result, replacing any previous one"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    log = logger.bind(pair_id=str(pair_id), user_id=str(user.id))
    log.info("run_pair_analysis_start")

    try:
        analysis, persisted = await service.run_pair_analysis(pair_id, db, persist=persist)
    except PairwiseError as exc:
        log.warning("run_pair_analysis_failed", error=exc.message)
        raise_http(exc)

    return {"analysis": analysis.model_dump(by_alias=True), "persisted": persisted}


@router.post(
    "/ai-analysis",
    summary="Analyse design images without a stored pair",
)
async def analyze(
    payload: AnalysisRequest,
    user: User = Depends(get_current_user),
    service: AnalysisService = Depends(get_analysis_service),
) -> dict:
    """``type="pair-analysis"`` compares two images; ``type="single-insights"``
    describes the first image only."""
    if not payload.design_a_url or not payload.design_b_url or not payload.title:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: designAUrl, designBUrl, title",
        )

    try:
        if payload.type == "pair-analysis":
            analysis, _ = await service.gemini.analyze_design_pair(
                payload.design_a_url,
                payload.design_b_url,
                payload.title,
                payload.description,
            )
            return {"analysis": analysis.model_dump(by_alias=True)}
        if payload.type == "single-insights":
            insights = await service.gemini.get_design_insights(
                payload.design_a_url, payload.description
            )
            return {"insights": insights}
    except PairwiseError as exc:
        raise_http(exc)

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail='Invalid analysis type. Use "pair-analysis" or "single-insights"',
    )
