"""
Pairwise — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import analysis, designs, ratings, users

router = APIRouter()

router.include_router(designs.router, prefix="/designs", tags=["Design Pairs"])
router.include_router(ratings.router, prefix="/designs", tags=["Ratings"])
router.include_router(analysis.router, tags=["AI Analysis"])
router.include_router(users.router, prefix="/users", tags=["Users"])
