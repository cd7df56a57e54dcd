"""
Pairwise — Design-Pair Lifecycle Service

Owns the life of a ``DesignPair`` and its two ``Design`` siblings:

  1. **Create** — validates the upload, stores both images in object
     storage, then inserts Design A, Design B and the DesignPair inside one
     store transaction.  Every completed step is recorded in an undo log;
     on failure the log is unwound in reverse (uploaded blobs deleted,
     inserted rows rolled back) before the failure is reported.

  2. **Delete** — checks existence and ownership, then removes dependents
     in foreign-key order:

         ratings -> ai_analysis -> design_pairs -> design A -> design B

     Each step commits on its own.  Failures are logged and skipped, except
     the DesignPair delete, which is surfaced to the caller.

  3. **Listing** — active pairs for review (newest first), the same list
     narrowed to one owner, single-pair lookup, and per-designer counts.

The acting user's id is always an explicit argument; nothing here reads
session state.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import get_settings
from app.models.analysis import AIAnalysisRecord
from app.models.design import Design, DesignPair
from app.models.rating import Rating
from app.services.errors import (
    NotFound,
    PairwiseError,
    PermissionDenied,
    StoreFailure,
    ValidationFailed,
)
from app.utils import storage as default_storage

logger = structlog.get_logger("pairwise.design_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

VARIATION_A_SUFFIX = " - Variation A"
VARIATION_B_SUFFIX = " - Variation B"

_TITLE_MAX_LENGTH = 200


@dataclass
class ImageUpload:
    """One uploaded image, already read into memory."""

    filename: str | None
    content_type: str | None
    data: bytes


@dataclass
class DeleteResult:
    pair_id: uuid.UUID
    failed_steps: list[str] = field(default_factory=list)


class _UndoLog:
    """Compensating actions for completed create-pair steps."""

    def __init__(self) -> None:
        self._steps: list[tuple[str, Callable[[], Awaitable[Any]]]] = []

    def push(self, step: str, undo: Callable[[], Awaitable[Any]]) -> None:
        self._steps.append((step, undo))

    async def unwind(self, log: Any) -> list[str]:
        """Run undo actions newest-first; return the steps that could not
        be undone."""
        failed: list[str] = []
        while self._steps:
            step, undo = self._steps.pop()
            try:
                await undo()
                log.info("create_pair_step_undone", step=step)
            except Exception as exc:
                failed.append(step)
                log.error("create_pair_undo_failed", step=step, error=str(exc))
        return failed


class DesignPairService:
    """Creates, lists and deletes design pairs.

    ``storage`` is any object exposing ``build_object_name``,
    ``upload_file`` and ``delete_file`` with the signatures of
    :mod:`app.utils.storage`; tests inject a fake.
    """

    def __init__(self, storage: Any | None = None) -> None:
        self.storage = storage if storage is not None else default_storage

    # ── Validation ────────────────────────────────────────────────────────

    def validate_upload(
        self,
        title: str,
        description: str,
        image_a: ImageUpload,
        image_b: ImageUpload,
    ) -> tuple[str, str]:
        """Reject bad input before any network call.

        Returns the stripped ``(title, description)``.
        """
        title = (title or "").strip()
        description = (description or "").strip()

        if not title:
            raise ValidationFailed("Title is required.")
        if len(title) > _TITLE_MAX_LENGTH:
            raise ValidationFailed(
                f"Title must be at most {_TITLE_MAX_LENGTH} characters."
            )
        if not description:
            raise ValidationFailed("Description is required.")

        max_bytes = get_settings().MAX_UPLOAD_BYTES
        for label, image in (("A", image_a), ("B", image_b)):
            if image is None:
                raise ValidationFailed(f"Image for variation {label} is required.")
            if not (image.content_type or "").startswith("image/"):
                raise ValidationFailed(
                    f"Variation {label} must be an image file.",
                    content_type=image.content_type,
                )
            if not image.data:
                raise ValidationFailed(f"Image for variation {label} is empty.")
            if len(image.data) > max_bytes:
                raise ValidationFailed(
                    f"Image for variation {label} exceeds {max_bytes} bytes."
                )

        return title, description

    # ── Create ────────────────────────────────────────────────────────────

    async def create_pair(
        self,
        designer_id: uuid.UUID,
        title: str,
        description: str,
        image_a: ImageUpload,
        image_b: ImageUpload,
        db_session: AsyncSession,
    ) -> DesignPair:
        """Upload both variations and create the pair.

        Either the pair with both designs becomes visible, or every
        completed step is compensated and a failure is raised.
        """
        title, description = self.validate_upload(title, description, image_a, image_b)

        log = logger.bind(designer_id=str(designer_id), title=title)
        log.info("create_pair_start")

        undo = _UndoLog()

        try:
            url_a = await self._upload(image_a, 1, undo, "upload_a")
            url_b = await self._upload(image_b, 2, undo, "upload_b")

            design_a = Design(
                designer_id=designer_id,
                title=f"{title}{VARIATION_A_SUFFIX}",
                description=description,
                image_url=url_a,
                is_active=True,
            )
            design_b = Design(
                designer_id=designer_id,
                title=f"{title}{VARIATION_B_SUFFIX}",
                description=description,
                image_url=url_b,
                is_active=True,
            )
            db_session.add_all([design_a, design_b])
            await db_session.flush()

            if design_a.id == design_b.id:
                raise ValidationFailed("Design A and Design B must be distinct.")

            pair = DesignPair(
                designer_id=designer_id,
                design_a_id=design_a.id,
                design_b_id=design_b.id,
                title=title,
                description=description,
                is_active=True,
            )
            db_session.add(pair)
            await db_session.flush()
            await db_session.commit()

        except asyncio.CancelledError:
            await db_session.rollback()
            leftover = await undo.unwind(log)
            log.warning("create_pair_cancelled", orphaned_steps=leftover)
            raise
        except Exception as exc:
            await db_session.rollback()
            leftover = await undo.unwind(log)
            log.error(
                "create_pair_failed",
                error=str(exc),
                orphaned_steps=leftover,
            )
            if isinstance(exc, PairwiseError):
                raise
            raise StoreFailure("Failed to create design pair.") from exc

        log.info("create_pair_complete", pair_id=str(pair.id))
        return await self.get_pair(pair.id, db_session)

    async def _upload(
        self,
        image: ImageUpload,
        index: int,
        undo: _UndoLog,
        step: str,
    ) -> str:
        path = self.storage.build_object_name(image.filename, index)
        url = await asyncio.to_thread(
            self.storage.upload_file,
            path,
            image.data,
            image.content_type or "application/octet-stream",
        )
        undo.push(step, lambda: asyncio.to_thread(self.storage.delete_file, path))
        logger.debug("image_uploaded", step=step, path=path)
        return url

    # ── Read ──────────────────────────────────────────────────────────────

    async def get_pair(
        self,
        pair_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> DesignPair:
        """Return one pair with Design A/B and its ratings, or raise
        ``NotFound``."""
        stmt = (
            select(DesignPair)
            .where(DesignPair.id == pair_id)
            .options(
                selectinload(DesignPair.design_a),
                selectinload(DesignPair.design_b),
                selectinload(DesignPair.ratings),
            )
            .execution_options(populate_existing=True)
        )
        try:
            result = await db_session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("get_pair_failed", pair_id=str(pair_id), error=str(exc))
            raise StoreFailure("Failed to load design pair.") from exc
        pair = result.scalar_one_or_none()

        if pair is None:
            raise NotFound(f"Design pair {pair_id} not found.", pair_id=str(pair_id))
        return pair

    async def list_pairs_for_review(
        self,
        db_session: AsyncSession,
    ) -> list[DesignPair]:
        """All active pairs with designs and ratings, newest first."""
        return await self._list_pairs(db_session)

    async def list_pairs_for_owner(
        self,
        owner_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> list[DesignPair]:
        return await self._list_pairs(db_session, owner_id=owner_id)

    async def _list_pairs(
        self,
        db_session: AsyncSession,
        owner_id: uuid.UUID | None = None,
    ) -> list[DesignPair]:
        stmt = (
            select(DesignPair)
            .where(DesignPair.is_active.is_(True))
            .options(
                selectinload(DesignPair.design_a),
                selectinload(DesignPair.design_b),
                selectinload(DesignPair.ratings),
            )
            .order_by(DesignPair.created_at.desc())
        )
        if owner_id is not None:
            stmt = stmt.where(DesignPair.designer_id == owner_id)

        try:
            result = await db_session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error(
                "list_pairs_failed",
                owner_id=str(owner_id) if owner_id else None,
                error=str(exc),
            )
            raise StoreFailure("Failed to load design pairs.") from exc
        pairs = list(result.scalars().all())

        logger.info(
            "list_pairs",
            owner_id=str(owner_id) if owner_id else None,
            count=len(pairs),
        )
        return pairs

    async def designer_stats(
        self,
        user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> dict:
        """Counts of a designer's designs, pairs, and ratings received."""
        try:
            designs = await db_session.scalar(
                select(func.count(Design.id)).where(Design.designer_id == user_id)
            )
            pairs = await db_session.scalar(
                select(func.count(DesignPair.id)).where(DesignPair.designer_id == user_id)
            )
            ratings = await db_session.scalar(
                select(func.count(Rating.id))
                .join(DesignPair, Rating.design_pair_id == DesignPair.id)
                .where(DesignPair.designer_id == user_id)
            )
        except SQLAlchemyError as exc:
            logger.error("designer_stats_failed", user_id=str(user_id), error=str(exc))
            raise StoreFailure("Failed to load designer stats.") from exc
        return {
            "total_designs": designs or 0,
            "total_pairs": pairs or 0,
            "total_ratings": ratings or 0,
        }

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_pair(
        self,
        pair_id: uuid.UUID,
        acting_user_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> DeleteResult:
        """Delete a pair and its dependents, best effort.

        Raises ``NotFound`` or ``PermissionDenied`` before anything is
        touched.  Only a failure to delete the DesignPair row itself is
        raised (as ``StoreFailure``); every other step failure is logged and
        reported in ``DeleteResult.failed_steps``.
        """
        log = logger.bind(pair_id=str(pair_id), user_id=str(acting_user_id))
        log.info("delete_pair_start")

        try:
            result = await db_session.execute(
                select(
                    DesignPair.designer_id,
                    DesignPair.design_a_id,
                    DesignPair.design_b_id,
                ).where(DesignPair.id == pair_id)
            )
            row = result.one_or_none()
        except SQLAlchemyError as exc:
            log.error("delete_pair_fetch_failed", error=str(exc))
            raise StoreFailure("Failed to load design pair.") from exc

        if row is None:
            log.warning("delete_pair_not_found")
            raise NotFound(f"Design pair {pair_id} not found.", pair_id=str(pair_id))

        owner_id, design_a_id, design_b_id = row
        if owner_id != acting_user_id:
            log.warning("delete_pair_forbidden", owner_id=str(owner_id))
            raise PermissionDenied("You can only delete your own designs.")

        steps = [
            ("ratings", delete(Rating).where(Rating.design_pair_id == pair_id), False),
            (
                "ai_analysis",
                delete(AIAnalysisRecord).where(AIAnalysisRecord.design_pair_id == pair_id),
                False,
            ),
            ("design_pair", delete(DesignPair).where(DesignPair.id == pair_id), True),
            ("design_a", delete(Design).where(Design.id == design_a_id), False),
            ("design_b", delete(Design).where(Design.id == design_b_id), False),
        ]

        outcome = DeleteResult(pair_id=pair_id)
        for step, stmt, required in steps:
            if await self._run_delete_step(step, stmt, db_session, log):
                continue
            outcome.failed_steps.append(step)
            if required:
                raise StoreFailure("Failed to delete design pair.", pair_id=str(pair_id))

        log.info("delete_pair_complete", failed_steps=outcome.failed_steps)
        return outcome

    async def _run_delete_step(
        self,
        step: str,
        stmt: Any,
        db_session: AsyncSession,
        log: Any,
    ) -> bool:
        try:
            result = await db_session.execute(stmt)
            await db_session.commit()
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.error("delete_step_failed", step=step, error=str(exc))
            return False

        log.info("delete_step_complete", step=step, rows=result.rowcount)
        return True
