"""Unit tests for AnalysisService — running and storing AI judgments."""
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app.models import AIAnalysisRecord
from app.services.analysis_service import AnalysisService, record_to_analysis
from app.services.errors import (
    AnalysisUnavailable,
    NotFound,
    StoreFailure,
    ValidationFailed,
)
from app.services.voting_service import VotingService


@pytest.fixture
def gemini():
    return AsyncMock()


@pytest.fixture
def analysis_service(gemini):
    return AnalysisService(gemini)


class TestRunPairAnalysis:
    """Tests for run_pair_analysis."""

    @pytest.mark.asyncio
    async def test_passes_pair_data_to_bridge_and_stores(
        self, analysis_service, gemini, pair, sample_analysis, db_session
    ):
        gemini.analyze_design_pair.return_value = (sample_analysis, "gemini-2.5-flash")

        analysis, persisted = await analysis_service.run_pair_analysis(pair.id, db_session)

        assert persisted is True
        assert analysis == sample_analysis
        gemini.analyze_design_pair.assert_awaited_once_with(
            pair.design_a.image_url,
            pair.design_b.image_url,
            "Header v1",
            "Hero section with call to action",
        )
        record = await analysis_service.get_stored_analysis(pair.id, db_session)
        assert record.recommended_design == "A"
        assert record.confidence == 82
        assert record.strengths_design_a == ["Strong contrast", "Single focal point"]
        assert record.model_used == "gemini-2.5-flash"

    @pytest.mark.asyncio
    async def test_rerun_overwrites_single_row(
        self, analysis_service, gemini, pair, sample_analysis, db_session
    ):
        gemini.analyze_design_pair.return_value = (sample_analysis, "gemini-2.5-flash")
        await analysis_service.run_pair_analysis(pair.id, db_session)

        second = sample_analysis.model_copy(
            update={"recommended_design": "tie", "confidence": 51}
        )
        gemini.analyze_design_pair.return_value = (second, "gemini-1.5-flash")
        await analysis_service.run_pair_analysis(pair.id, db_session)

        count = await db_session.scalar(select(func.count(AIAnalysisRecord.id)))
        assert count == 1
        record = await analysis_service.get_stored_analysis(pair.id, db_session)
        assert record.recommended_design == "tie"
        assert record.confidence == 51
        assert record.model_used == "gemini-1.5-flash"

    @pytest.mark.asyncio
    async def test_persist_false_stores_nothing(
        self, analysis_service, gemini, pair, sample_analysis, db_session
    ):
        gemini.analyze_design_pair.return_value = (sample_analysis, "gemini-2.5-flash")

        _, persisted = await analysis_service.run_pair_analysis(
            pair.id, db_session, persist=False
        )

        assert persisted is False
        assert await analysis_service.get_stored_analysis(pair.id, db_session) is None

    @pytest.mark.asyncio
    async def test_save_failure_still_returns_analysis(
        self, analysis_service, gemini, pair, sample_analysis, db_session
    ):
        pair_id = pair.id
        gemini.analyze_design_pair.return_value = (sample_analysis, "gemini-2.5-flash")
        error = OperationalError("INSERT", {}, Exception("disk full"))

        with patch.object(db_session, "flush", AsyncMock(side_effect=error)):
            analysis, persisted = await analysis_service.run_pair_analysis(pair_id, db_session)

        assert persisted is False
        assert analysis.recommended_design == "A"
        assert await analysis_service.get_stored_analysis(pair_id, db_session) is None

    @pytest.mark.asyncio
    async def test_bridge_failure_leaves_voting_available(
        self, analysis_service, gemini, pair, tester, db_session
    ):
        gemini.analyze_design_pair.side_effect = AnalysisUnavailable("model down")

        with pytest.raises(AnalysisUnavailable):
            await analysis_service.run_pair_analysis(pair.id, db_session)

        rating = await VotingService().submit_vote(
            tester.id, pair.id, pair.design_a_id, db_session
        )
        assert rating.chosen_design_id == pair.design_a_id
        assert await analysis_service.get_stored_analysis(pair.id, db_session) is None

    @pytest.mark.asyncio
    async def test_unknown_pair(self, analysis_service, gemini, db_session):
        with pytest.raises(NotFound):
            await analysis_service.run_pair_analysis(uuid.uuid4(), db_session)
        gemini.analyze_design_pair.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_image_never_calls_bridge(
        self, analysis_service, gemini, pair, db_session
    ):
        pair.design_b.image_url = ""
        await db_session.commit()

        with pytest.raises(ValidationFailed):
            await analysis_service.run_pair_analysis(pair.id, db_session)
        gemini.analyze_design_pair.assert_not_called()

    @pytest.mark.asyncio
    async def test_pair_lookup_store_failure(
        self, analysis_service, gemini, pair, db_session
    ):
        pair_id = pair.id
        error = OperationalError("SELECT", {}, Exception("server closed the connection"))
        with patch.object(db_session, "execute", AsyncMock(side_effect=error)):
            with pytest.raises(StoreFailure):
                await analysis_service.run_pair_analysis(pair_id, db_session)
        gemini.analyze_design_pair.assert_not_called()

    @pytest.mark.asyncio
    async def test_stored_analysis_store_failure(self, analysis_service, pair, db_session):
        pair_id = pair.id
        error = OperationalError("SELECT", {}, Exception("server closed the connection"))
        with patch.object(db_session, "execute", AsyncMock(side_effect=error)):
            with pytest.raises(StoreFailure):
                await analysis_service.get_stored_analysis(pair_id, db_session)


class TestRecordToAnalysis:
    """Tests for record_to_analysis."""

    @pytest.mark.asyncio
    async def test_round_trips_stored_fields(self, pair, add_analysis):
        record = await add_analysis(pair.id)
        analysis = record_to_analysis(record)
        assert analysis.recommended_design == "B"
        assert analysis.strengths.design_b == ["Whitespace"]
        assert analysis.weaknesses.design_a == ["Clutter"]
        assert analysis.design_principles == ["Balance"]
