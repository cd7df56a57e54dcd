"""
Pairwise — Voting & Aggregation Service

One rating per (tester, design pair).  The store's unique constraint
``uq_rating_tester_pair`` is the only enforcement: ``submit_vote`` always
attempts the insert and reads a uniqueness violation as "already voted".
``has_voted`` exists so the caller can render the read-only "already
reviewed" view; it is not a guard.

Vote tally:
    design_x_votes      = count(chosen_design_id == design_x_id)
    total_votes         = count(all ratings for the pair)
    design_x_percentage = round_half_up(design_x_votes / total_votes * 100)
                          (0 when total_votes == 0)

Ratings whose chosen design matches neither side count toward the total
only, so the two percentages can then fall short of 100.
"""

from __future__ import annotations

import uuid
from typing import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.design import DesignPair
from app.models.rating import Rating
from app.services.errors import AlreadyVoted, NotFound, StoreFailure, ValidationFailed

logger = structlog.get_logger("pairwise.voting_service")

_UNIQUE_VIOLATION_SQLSTATE = "23505"
_RATING_UNIQUE_CONSTRAINT = "uq_rating_tester_pair"


def vote_percentage(votes: int, total: int) -> int:
    """Integer percentage rounded half-up; 0 when there are no votes."""
    if total <= 0:
        return 0
    return (votes * 200 + total) // (total * 2)


def tally_votes(
    design_a_id: uuid.UUID,
    design_b_id: uuid.UUID,
    chosen_design_ids: Iterable[uuid.UUID],
) -> dict:
    chosen = list(chosen_design_ids)
    a_votes = sum(1 for c in chosen if c == design_a_id)
    b_votes = sum(1 for c in chosen if c == design_b_id)
    total = len(chosen)

    return {
        "design_a_votes": a_votes,
        "design_b_votes": b_votes,
        "total_votes": total,
        "design_a_percentage": vote_percentage(a_votes, total),
        "design_b_percentage": vote_percentage(b_votes, total),
    }


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the IntegrityError came from a uniqueness constraint.

    asyncpg exposes the SQLSTATE; SQLite only gives a message.
    """
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code == _UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(orig).lower()
    return _RATING_UNIQUE_CONSTRAINT in message or "unique constraint" in message


class VotingService:
    """Records votes and computes per-pair tallies."""

    async def has_voted(
        self,
        tester_id: uuid.UUID,
        pair_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> bool:
        return await self.get_user_rating(tester_id, pair_id, db_session) is not None

    async def get_user_rating(
        self,
        tester_id: uuid.UUID,
        pair_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> Rating | None:
        """The tester's rating for this pair, if any."""
        stmt = select(Rating).where(
            Rating.tester_id == tester_id,
            Rating.design_pair_id == pair_id,
        )
        try:
            result = await db_session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error(
                "get_user_rating_failed",
                tester_id=str(tester_id),
                pair_id=str(pair_id),
                error=str(exc),
            )
            raise StoreFailure("Failed to load review status.") from exc
        return result.scalar_one_or_none()

    async def submit_vote(
        self,
        tester_id: uuid.UUID,
        pair_id: uuid.UUID,
        chosen_design_id: uuid.UUID,
        db_session: AsyncSession,
        feedback: str | None = None,
    ) -> Rating:
        """Insert one rating.

        Raises
        ------
        NotFound
            The pair does not exist.
        ValidationFailed
            ``chosen_design_id`` is neither of the pair's designs.
        AlreadyVoted
            The tester already has a rating for this pair.
        StoreFailure
            Any other store failure.  Not retried.
        """
        log = logger.bind(tester_id=str(tester_id), pair_id=str(pair_id))
        log.info("submit_vote_start")

        design_ids = await self._pair_design_ids(pair_id, db_session)
        if chosen_design_id not in design_ids:
            log.warning("submit_vote_foreign_design", chosen=str(chosen_design_id))
            raise ValidationFailed(
                "Chosen design must be Variation A or Variation B of this pair.",
                chosen_design_id=str(chosen_design_id),
            )

        feedback = (feedback or "").strip() or None
        rating = Rating(
            tester_id=tester_id,
            design_pair_id=pair_id,
            chosen_design_id=chosen_design_id,
            feedback=feedback,
        )

        try:
            db_session.add(rating)
            await db_session.flush()
            await db_session.commit()
        except IntegrityError as exc:
            await db_session.rollback()
            if is_unique_violation(exc):
                log.info("submit_vote_already_voted")
                raise AlreadyVoted(
                    "You have already reviewed this design pair. "
                    "You can only review each design pair once."
                ) from exc
            log.error("submit_vote_failed", error=str(exc))
            raise StoreFailure("Failed to submit review.") from exc
        except SQLAlchemyError as exc:
            await db_session.rollback()
            log.error("submit_vote_failed", error=str(exc))
            raise StoreFailure("Failed to submit review.") from exc

        log.info("submit_vote_complete", rating_id=str(rating.id))
        return rating

    async def compute_voting_stats(
        self,
        pair_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> dict:
        """Per-variant vote counts and percentages for one pair."""
        design_a_id, design_b_id = await self._pair_design_ids(pair_id, db_session)

        try:
            result = await db_session.execute(
                select(Rating.chosen_design_id).where(Rating.design_pair_id == pair_id)
            )
        except SQLAlchemyError as exc:
            logger.error("compute_voting_stats_failed", pair_id=str(pair_id), error=str(exc))
            raise StoreFailure("Failed to load voting stats.") from exc
        chosen = list(result.scalars().all())

        stats = tally_votes(design_a_id, design_b_id, chosen)
        foreign = stats["total_votes"] - stats["design_a_votes"] - stats["design_b_votes"]
        if foreign:
            logger.warning(
                "ratings_with_foreign_design",
                pair_id=str(pair_id),
                count=foreign,
            )
        return stats

    async def _pair_design_ids(
        self,
        pair_id: uuid.UUID,
        db_session: AsyncSession,
    ) -> tuple[uuid.UUID, uuid.UUID]:
        try:
            result = await db_session.execute(
                select(DesignPair.design_a_id, DesignPair.design_b_id).where(
                    DesignPair.id == pair_id
                )
            )
        except SQLAlchemyError as exc:
            logger.error("pair_lookup_failed", pair_id=str(pair_id), error=str(exc))
            raise StoreFailure("Failed to load design pair.") from exc
        row = result.one_or_none()
        if row is None:
            raise NotFound(f"Design pair {pair_id} not found.", pair_id=str(pair_id))
        return row[0], row[1]
