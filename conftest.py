import os
import uuid
from pathlib import Path

# Settings are read once and cached, so the test environment must be in place
# before any project module is imported.
TEST_DATABASE_URL = "sqlite:///./portfolio-builder-test.db"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["REDIS_URL"] = ""
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["RESUME_PARSER"] = "fallback"
os.environ["AUTH_ENABLED"] = "true"
os.environ["AUTH_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["LOG_FORMAT"] = "console"
# Write EMF metrics to stdout instead of probing for a CloudWatch agent
os.environ["AWS_EMF_ENVIRONMENT"] = "Local"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

# --- Alembic Imports ---
from alembic.config import Config
from alembic import command
# --- End Alembic Imports ---

from main import app
from database import Base, SessionLocal, engine
from rate_limit import SlidingWindowRateLimiter
import auth
import crud
import models
import schemas


def _remove_sqlite_files(db_path: str) -> None:
    for suffix in ("", "-wal", "-shm"):
        path = Path(db_path + suffix)
        if path.exists():
            path.unlink()


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create the test database from models and stamp with Alembic head."""
    db_path = TEST_DATABASE_URL.split("///")[-1]
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    alembic_cfg = Config("alembic.ini")
    alembic_cfg.attributes["sqlalchemy.url"] = TEST_DATABASE_URL
    command.stamp(alembic_cfg, "head")

    yield  # Tests run here

    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    _remove_sqlite_files(db_path)


@pytest.fixture(scope="function")
def db_session(setup_test_database):
    """Yields a SQLAlchemy session bound to the test database."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def test_client():
    """Test client; any dependency overrides a test installs are removed afterwards."""
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


# --- Factories ---
def make_user(
    db: Session,
    plan: models.PlanTier = models.PlanTier.FREE,
    with_subscription: bool = True,
    password: str = "s3cret-pass",
) -> models.User:
    """Create a committed user with a unique email and, by default, a subscription."""
    email = f"user-{uuid.uuid4().hex[:10]}@example.com"
    user = crud.create_user(
        db,
        schemas.UserCreate(name="Test User", email=email, password=password),
        hashed_password=auth.hash_password(password),
    )
    if with_subscription:
        crud.provision_subscription(db, user.id)
        if plan is not models.PlanTier.FREE:
            crud.set_subscription_plan(db, user.id, plan)
    db.commit()
    db.refresh(user)
    return user


def portfolio_payload(subdomain: str = None, **overrides) -> dict:
    """A valid save payload in the camelCase shape the builder UI sends."""
    payload = {
        "title": "My Portfolio",
        "subdomain": subdomain or f"site-{uuid.uuid4().hex[:10]}",
        "templateId": "modern",
        "data": {
            "name": "Ada Lovelace",
            "headline": "Software Engineer",
            "bio": "I build things.",
            "location": "Remote",
            "skills": ["Python", "FastAPI"],
            "projects": [
                {
                    "id": "proj-1",
                    "title": "Analytical Engine",
                    "description": "A general-purpose computer.",
                    "tech": ["Brass"],
                    "link": "https://example.com/engine",
                    "repo": "",
                }
            ],
            "experience": [
                {
                    "id": "exp-1",
                    "company": "Babbage & Co",
                    "role": "Engineer",
                    "startDate": "1842",
                    "bullets": ["Wrote the first program."],
                }
            ],
            "education": [
                {"id": "edu-1", "school": "Home", "degree": "Mathematics", "startYear": "1830"}
            ],
            "contact": {"email": "ada@example.com", "github": "https://github.com/ada"},
        },
        "config": {"primaryColor": "#0f172a", "accentColor": "#22d3ee"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture(name="make_user")
def make_user_fixture(db_session: Session):
    def _make(**kwargs) -> models.User:
        return make_user(db_session, **kwargs)

    return _make


@pytest.fixture(name="portfolio_payload")
def portfolio_payload_fixture():
    return portfolio_payload


@pytest.fixture
def as_user():
    """Authenticate the test client as the given user by overriding the principal."""

    def _as_user(user: models.User) -> None:
        app.dependency_overrides[auth.get_current_user] = lambda: user

    return _as_user


# --- Redis double for the rate limiter ---
class _FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self._calls.clear()

    def zremrangebyscore(self, key, min_score, max_score):
        self._calls.append(("zremrangebyscore", key, min_score, max_score))
        return self

    def zadd(self, key, mapping):
        self._calls.append(("zadd", key, mapping))
        return self

    def zcard(self, key):
        self._calls.append(("zcard", key))
        return self

    def pexpire(self, key, ms):
        self._calls.append(("pexpire", key, ms))
        return self

    async def execute(self):
        results = []
        for name, *args in self._calls:
            results.append(await getattr(self._redis, name)(*args))
        self._calls.clear()
        return results


class FakeRedis:
    """In-memory stand-in for the sorted-set commands the limiter issues.

    State lives on the instance, so two limiters sharing one FakeRedis behave
    like two API processes sharing one Redis server.
    """

    def __init__(self):
        self.sets: dict[str, dict[str, float]] = {}

    def pipeline(self, transaction: bool = True) -> _FakePipeline:
        return _FakePipeline(self)

    async def zremrangebyscore(self, key, min_score, max_score):
        members = self.sets.get(key, {})
        upper = float(max_score)
        doomed = [member for member, score in members.items() if score <= upper]
        for member in doomed:
            del members[member]
        return len(doomed)

    async def zadd(self, key, mapping):
        self.sets.setdefault(key, {}).update({m: float(s) for m, s in mapping.items()})
        return len(mapping)

    async def zcard(self, key):
        return len(self.sets.get(key, {}))

    async def pexpire(self, key, ms):
        return True

    async def zrem(self, key, member):
        return 1 if self.sets.get(key, {}).pop(member, None) is not None else 0

    async def zrange(self, key, start, end, withscores=False):
        ordered = sorted(self.sets.get(key, {}).items(), key=lambda item: item[1])
        window = ordered[start : end + 1] if end >= 0 else ordered[start:]
        return window if withscores else [member for member, _ in window]


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def resume_limiter(fake_redis, fake_clock):
    """The production limit (30 per 60 s) over the Redis double."""
    return SlidingWindowRateLimiter(fake_redis, limit=30, window_seconds=60, clock=fake_clock)
