"""
Pairwise — Shared API dependencies.

Identity resolution, service providers, and the translation of service
outcomes into HTTP errors.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Awaitable, NoReturn, TypeVar

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.models.user import User
from app.services.analysis_service import AnalysisService
from app.services.design_service import DesignPairService
from app.services.errors import PairwiseError
from app.services.gemini_service import GeminiService
from app.services.voting_service import VotingService
from app.utils.tokens import InvalidToken, decode_access_token, profile_from_claims

logger = structlog.get_logger("pairwise.api.deps")

T = TypeVar("T")

_bearer_scheme = HTTPBearer(auto_error=False)


# ── Service singletons ────────────────────────────────────────────────────────

_design_service: DesignPairService | None = None
_voting_service: VotingService | None = None
_analysis_service: AnalysisService | None = None


def get_design_service() -> DesignPairService:
    global _design_service
    if _design_service is None:
        _design_service = DesignPairService()
    return _design_service


def get_voting_service() -> VotingService:
    global _voting_service
    if _voting_service is None:
        _voting_service = VotingService()
    return _voting_service


def get_analysis_service() -> AnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = AnalysisService(GeminiService())
    return _analysis_service


# ── Identity ──────────────────────────────────────────────────────────────────

_UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the caller from ``Authorization: Bearer <token>``.

    A caller known to the identity provider but missing from ``users`` gets
    a profile row created from the token claims.
    """
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers=_UNAUTHORIZED_HEADERS,
        )

    try:
        claims = decode_access_token(credentials.credentials)
        user_id = uuid.UUID(str(claims["sub"]))
    except (InvalidToken, ValueError) as exc:
        logger.warning("auth_token_rejected", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers=_UNAUTHORIZED_HEADERS,
        )

    user = await db.get(User, user_id)
    if user is not None:
        return user

    user = User(id=user_id, **profile_from_claims(claims))
    db.add(user)
    try:
        await db.flush()
        await db.commit()
        logger.info("user_profile_created", user_id=str(user_id))
    except IntegrityError:
        # Created concurrently by another request.
        await db.rollback()
        user = await db.get(User, user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to verify user profile",
            )
    return user


# ── Error translation ─────────────────────────────────────────────────────────

def raise_http(exc: PairwiseError) -> NoReturn:
    """Re-raise a service outcome as the matching ``HTTPException``."""
    raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


_detached_fetches: set[asyncio.Future] = set()


def _finish_detached(fetch: asyncio.Future) -> None:
    _detached_fetches.discard(fetch)
    if not fetch.cancelled() and fetch.exception() is not None:
        logger.warning("detached_fetch_failed", error=str(fetch.exception()))


async def with_fetch_timeout(awaitable: Awaitable[T]) -> T:
    """Fail a page-level data fetch after ``FETCH_TIMEOUT_SECONDS``.

    Only the caller stops waiting; the store request itself is left to
    finish in the background.
    """
    timeout = get_settings().FETCH_TIMEOUT_SECONDS
    fetch = asyncio.ensure_future(awaitable)
    try:
        return await asyncio.wait_for(asyncio.shield(fetch), timeout=timeout)
    except asyncio.TimeoutError:
        _detached_fetches.add(fetch)
        fetch.add_done_callback(_finish_detached)
        logger.warning("fetch_timeout", timeout=timeout)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Loading timed out. Please refresh.",
        )
