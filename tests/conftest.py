"""Shared pytest fixtures for Pairwise tests."""
import os

# Settings are read once per process; these must be in place before any
# ``app`` module is imported.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["AUTH_JWT_SECRET"] = "test-secret"
os.environ["GEMINI_API_KEY"] = ""
os.environ["GCS_BUCKET_NAME"] = ""
os.environ["CLOUD_SQL_INSTANCE_CONNECTION"] = ""

import uuid
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.models import AIAnalysisRecord, Rating, User
from app.schemas.analysis import AIAnalysis
from app.services.design_service import DesignPairService, ImageUpload

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory SQLite database per test, built from the ORM metadata."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        yield session


async def _add_user(db_session, email: str, user_type: str) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        name=email.split("@")[0],
        user_type=user_type,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def designer(db_session):
    return await _add_user(db_session, "dana@example.com", "designer")


@pytest_asyncio.fixture
async def other_designer(db_session):
    return await _add_user(db_session, "omar@example.com", "designer")


@pytest_asyncio.fixture
async def tester(db_session):
    return await _add_user(db_session, "tess@example.com", "tester")


@pytest_asyncio.fixture
async def testers(db_session):
    """Four distinct testers for tally scenarios."""
    return [
        await _add_user(db_session, f"tester{i}@example.com", "tester")
        for i in range(4)
    ]


@pytest.fixture
def fake_storage():
    """Object storage double with the ``app.utils.storage`` call surface."""
    storage = MagicMock()
    storage.build_object_name.side_effect = (
        lambda filename, index: f"designs/1700000000000-{index}-{filename}"
    )
    storage.upload_file.side_effect = (
        lambda path, data, content_type: f"https://storage.test/bucket/{path}"
    )
    return storage


@pytest.fixture
def design_service(fake_storage):
    return DesignPairService(storage=fake_storage)


@pytest.fixture
def image_a():
    return ImageUpload(filename="header-a.png", content_type="image/png", data=PNG_BYTES)


@pytest.fixture
def image_b():
    return ImageUpload(filename="header-b.png", content_type="image/png", data=PNG_BYTES)


@pytest_asyncio.fixture
async def pair(design_service, designer, image_a, image_b, db_session):
    """A stored pair owned by ``designer``."""
    return await design_service.create_pair(
        designer_id=designer.id,
        title="Header v1",
        description="Hero section with call to action",
        image_a=image_a,
        image_b=image_b,
        db_session=db_session,
    )


@pytest.fixture
def sample_analysis():
    """A judgment as returned by the AI bridge."""
    return AIAnalysis.model_validate(
        {
            "recommendedDesign": "A",
            "confidence": 82,
            "reasoning": "Design A has a clearer call to action.",
            "strengths": {
                "designA": ["Strong contrast", "Single focal point"],
                "designB": ["Playful illustration"],
            },
            "weaknesses": {
                "designA": ["Dense footer"],
                "designB": ["Competing buttons", "Low contrast text"],
            },
            "designPrinciples": ["Hierarchy", "Contrast"],
            "userExperience": "A guides the eye to the signup button.",
            "visualHierarchy": "A: headline, image, button. B: unclear.",
            "accessibility": "B fails contrast on the subtitle.",
        }
    )


@pytest.fixture
def add_rating(db_session):
    """Insert a rating directly, bypassing the voting service."""

    async def _add(tester_id, pair_id, chosen_design_id) -> Rating:
        rating = Rating(
            tester_id=tester_id,
            design_pair_id=pair_id,
            chosen_design_id=chosen_design_id,
        )
        db_session.add(rating)
        await db_session.commit()
        return rating

    return _add


@pytest.fixture
def add_analysis(db_session):
    """Insert a stored analysis row for a pair."""

    async def _add(pair_id) -> AIAnalysisRecord:
        record = AIAnalysisRecord(
            design_pair_id=pair_id,
            recommended_design="B",
            confidence=60,
            reasoning="B is calmer.",
            strengths_design_a=[],
            strengths_design_b=["Whitespace"],
            weaknesses_design_a=["Clutter"],
            weaknesses_design_b=[],
            design_principles=["Balance"],
            user_experience="",
            visual_hierarchy="",
            accessibility="",
            model_used="gemini-2.5-flash",
            created_at=datetime.now(timezone.utc),
        )
        db_session.add(record)
        await db_session.commit()
        return record

    return _add
