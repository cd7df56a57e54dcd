"""
Pairwise — AI Analysis persistence.

Runs the Gemini bridge for a stored pair and keeps only the latest
successful judgment per pair (upsert keyed by ``design_pair_id``).  A
failed save is logged and does not discard a judgment that was produced.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.analysis import AIAnalysisRecord
from app.models.design import DesignPair
from app.schemas.analysis import AIAnalysis
from app.services.errors import NotFound, StoreFailure, ValidationFailed

logger = structlog.get_logger("pairwise.analysis_service")


def record_to_analysis(record: AIAnalysisRecord) -> AIAnalysis:
    return AIAnalysis(
        recommended_design=record.recommended_design,
        confidence=record.confidence,
        reasoning=record.reasoning,
        strengths={
            "design_a": record.strengths_design_a or [],
            "design_b": record.strengths_design_b or [],
        },
        weaknesses={
            "design_a": record.weaknesses_design_a or [],
            "design_b": record.weaknesses_design_b or [],
        },
        design_principles=record.design_principles or [],
        user_experience=record.user_experience,
        visual_hierarchy=record.visual_hierarchy,
        accessibility=record.accessibility,
    )


class AnalysisService:
    def __init__(self, gemini_service: Any) -> None:
        self.gemini = gemini_service

    async def run_pair_analysis(
        self,
        pair_id: uuid.UUID,
        db_session: AsyncSession,
        persist: bool = True,
    ) -> tuple[AIAnalysis, bool]:
        """Analyse a stored pair.

        Returns ``(analysis, persisted)``.  Raises ``NotFound`` for an
        unknown pair, ``ValidationFailed`` when either design has no image,
        and lets ``AnalysisUnavailable`` from the bridge propagate.
        """
        log = logger.bind(pair_id=str(pair_id))

        stmt = select(DesignPair).where(DesignPair.id == pair_id)
        try:
            pair = (await db_session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            log.error("analysis_pair_lookup_failed", error=str(exc))
            raise StoreFailure("Failed to load design pair.") from exc
        if pair is None:
            raise NotFound(f"Design pair {pair_id} not found.", pair_id=str(pair_id))

        url_a = pair.design_a.image_url if pair.design_a else None
        url_b = pair.design_b.image_url if pair.design_b else None
        if not url_a or not url_b:
            log.warning("analysis_missing_images")
            raise ValidationFailed("Both design images are required for analysis.")

        analysis, model_used = await self.gemini.analyze_design_pair(
            url_a, url_b, pair.title, pair.description
        )

        persisted = False
        if persist:
            persisted = await self._upsert(pair_id, analysis, model_used, db_session)

        log.info(
            "pair_analysis_complete",
            recommended=analysis.recommended_design,
            persisted=persisted,
        )
        return analysis, persisted

    async def get_stored_analysis(
        self,
        pair_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> AIAnalysisRecord | None:
        try:
            return await self._select_stored(pair_id, db_session)
        except SQLAlchemyError as exc:
            logger.error("get_stored_analysis_failed", pair_id=str(pair_id), error=str(exc))
            raise StoreFailure("Failed to load stored analysis.") from exc

    async def _select_stored(
        self,
        pair_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> AIAnalysisRecord | None:
        stmt = select(AIAnalysisRecord).where(AIAnalysisRecord.design_pair_id == pair_id)
        return (await db_session.execute(stmt)).scalar_one_or_none()

    async def _upsert(
        self,
        pair_id: uuid.UUID,
        analysis: AIAnalysis,
        model_used: str,
        db_session: AsyncSession,
    ) -> bool:
        values = {
            "recommended_design": analysis.recommended_design,
            "confidence": analysis.confidence,
            "reasoning": analysis.reasoning,
            "strengths_design_a": analysis.strengths.design_a,
            "strengths_design_b": analysis.strengths.design_b,
            "weaknesses_design_a": analysis.weaknesses.design_a,
            "weaknesses_design_b": analysis.weaknesses.design_b,
            "design_principles": analysis.design_principles,
            "user_experience": analysis.user_experience,
            "visual_hierarchy": analysis.visual_hierarchy,
            "accessibility": analysis.accessibility,
            "model_used": model_used,
        }

        try:
            existing = await self._select_stored(pair_id, db_session)
            if existing is not None:
                for key, value in values.items():
                    setattr(existing, key, value)
                logger.info("analysis_updated", pair_id=str(pair_id))
            else:
                db_session.add(AIAnalysisRecord(design_pair_id=pair_id, **values))
                logger.info("analysis_created", pair_id=str(pair_id))
            await db_session.flush()
            await db_session.commit()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            logger.error("analysis_persist_failed", pair_id=str(pair_id), error=str(exc))
            return False

        return True
