"""
Pairwise — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from app.models.user import User
from app.models.design import Design, DesignPair
from app.models.rating import Rating
from app.models.analysis import AIAnalysisRecord

__all__ = [
    "User",
    "Design",
    "DesignPair",
    "Rating",
    "AIAnalysisRecord",
]
