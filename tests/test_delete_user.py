"""Tests for the admin user-removal script."""
import pytest
from sqlalchemy import func, select

from app.models import Design, DesignPair, Rating, User
from scripts.delete_user import remove_user


async def _count(db_session, column) -> int:
    return await db_session.scalar(select(func.count(column)))


class TestRemoveUser:
    """Tests for remove_user."""

    @pytest.mark.asyncio
    async def test_removes_pairs_votes_and_user(
        self, design_service, pair, designer, other_designer, tester,
        image_a, image_b, add_rating, db_session,
    ):
        designer_id, pair_id = designer.id, pair.id
        theirs = await design_service.create_pair(
            other_designer.id, "Footer", "Links", image_a, image_b, db_session
        )
        await add_rating(tester.id, pair_id, pair.design_a_id)
        # The designer also voted on someone else's pair.
        await add_rating(designer_id, theirs.id, theirs.design_b_id)

        summary = await remove_user(designer, db_session, service=design_service)

        assert summary["user_deleted"] is True
        assert summary["pairs_deleted"] == [str(pair_id)]
        assert summary["pairs_failed"] == []
        assert await db_session.get(User, designer_id) is None
        assert await _count(db_session, DesignPair.id) == 1
        assert await _count(db_session, Design.id) == 2
        assert await _count(db_session, Rating.id) == 0

    @pytest.mark.asyncio
    async def test_user_without_pairs(self, design_service, tester, db_session):
        tester_id = tester.id
        summary = await remove_user(tester, db_session, service=design_service)
        assert summary == {"pairs_deleted": [], "pairs_failed": [], "user_deleted": True}
        assert await db_session.get(User, tester_id) is None
