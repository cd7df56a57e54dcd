"""
Pairwise — Service-level outcomes.

Services raise these instead of leaking SQLAlchemy, storage or Gemini
exceptions; the API layer maps each class to one HTTP status code.
"""

from __future__ import annotations


class PairwiseError(Exception):
    """Base class for every caller-meaningful service failure."""

    status_code: int = 500

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationFailed(PairwiseError):
    """Input rejected before any network call."""

    status_code = 400


class PermissionDenied(PairwiseError):
    """Acting user does not own the resource."""

    status_code = 403


class NotFound(PairwiseError):
    status_code = 404


class AlreadyVoted(PairwiseError):
    """The (tester, pair) uniqueness constraint rejected a second rating."""

    status_code = 409


class AnalysisUnavailable(PairwiseError):
    """The AI bridge is unconfigured or failed; never blocks voting."""

    status_code = 502


class StoreFailure(PairwiseError):
    """Generic relational-store or object-storage failure."""

    status_code = 500
