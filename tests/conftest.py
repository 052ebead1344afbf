"""
Grassroots Hub Backend — Test Configuration (conftest.py)
===========================================================

Fixture Hierarchy:
    Function-scoped (fresh for each test):
    ├── db_engine:        aiosqlite engine on a throwaway database file
    ├── session_factory:  async_sessionmaker bound to db_engine
    ├── trial_service:    TrialService with its own lock registry
    ├── vacancy_service:  VacancyService
    ├── test_client:      HTTPX AsyncClient with the services overridden
    └── seeded_list:      a trial list holding players A, B, C, D (ranks 1-4)

    Plain helpers:
    └── make_token():     signed bearer token for a user id and role
"""

import os

# Override settings for testing BEFORE any grassroots imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["RETRY_MIN_WAIT_MS"] = "0"
os.environ["RETRY_MAX_WAIT_MS"] = "5"

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from grassroots.config import settings
from grassroots.database import build_engine, build_session_factory, create_all
from grassroots.schemas.trial import PlayerAddRequest, TrialListCreate
from grassroots.services.locks import ScopeLocks
from grassroots.services.trial_service import TrialService, get_trial_service
from grassroots.services.vacancy_service import VacancyService, get_vacancy_service

COACH_ID = 11
OTHER_COACH_ID = 12
PLAYER_USER_ID = 21


def make_token(
    user_id: int = COACH_ID,
    role: str = "Coach",
    expires_in: timedelta = timedelta(hours=1),
    secret: Optional[str] = None,
) -> str:
    claims = {
        "user_id": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(claims, secret or settings.jwt_secret, algorithm="HS256")


def auth_headers(user_id: int = COACH_ID, role: str = "Coach") -> Dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """A fresh schema per test; a file (not :memory:) so sessions get separate connections."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'grassroots_test.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def trial_service(session_factory):
    return TrialService(session_factory, ScopeLocks())


@pytest.fixture
def vacancy_service(session_factory):
    return VacancyService(session_factory)


@pytest_asyncio.fixture
async def seeded_list(trial_service):
    """
    A trial list of coach COACH_ID with players A, B, C, D at ranks 1-4.

    Returns:
        (list_id, {"A": evaluation_id, ...})
    """
    created = await trial_service.create_trial_list(
        COACH_ID, TrialListCreate(title="U12 Spring Trial", max_players=10)
    )
    ids = {}
    for player_id, name in enumerate("ABCD", start=101):
        added = await trial_service.add_player(
            COACH_ID, created.id, PlayerAddRequest(player_id=player_id, player_name=name)
        )
        ids[name] = added.evaluation_id
    return created.id, ids


@pytest_asyncio.fixture
async def test_client(trial_service, vacancy_service):
    """
    HTTPX AsyncClient talking to the app through ASGITransport.

    The service dependencies are overridden so every request hits this
    test's database.
    """
    from grassroots.main import app

    app.dependency_overrides[get_trial_service] = lambda: trial_service
    app.dependency_overrides[get_vacancy_service] = lambda: vacancy_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
