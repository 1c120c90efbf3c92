import os
import sys
import asyncio

import jwt
import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# A sufficiently long JWT secret for tests
TEST_JWT_SECRET = "x" * 32
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("ALLOWED_ORIGINS", "http://testserver")
os.environ.setdefault("DISABLE_RATE_LIMITS", "true")
# Subscribers and publishers share the test client's event loop.
os.environ.setdefault("BROADCAST_BACKEND", "memory")
# Honour any externally provided DATABASE_URL (e.g. CI may set a file-backed DB)
# but fall back to an in-memory SQLite database so local runs remain isolated.
DEFAULT_DB_URL = os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from crease import db, models  # noqa: E402
from crease.cache import live_state_cache  # noqa: E402
from crease.services import broadcast  # noqa: E402

TEAM_A = "team-a"
TEAM_B = "team-b"
SQUAD_A = [f"a{i}" for i in range(1, 12)]
SQUAD_B = [f"b{i}" for i in range(1, 12)]


@pytest.fixture(scope="session")
def session_loop():
    """Single event loop for all sync fixtures that need to run async DB code."""

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """Ensure a strong JWT secret is present for all tests."""
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    yield


@pytest.fixture(autouse=True, scope="session")
def ensure_database(session_loop):
    """Ensure the test database starts clean and honours DATABASE_URL."""

    mp = pytest.MonkeyPatch()
    desired_url = os.getenv("DATABASE_URL") or DEFAULT_DB_URL
    mp.setenv("DATABASE_URL", desired_url)

    if desired_url.startswith("sqlite") and ":memory:" not in desired_url:
        path = desired_url.split("///")[-1]
        if os.path.exists(path):
            os.remove(path)

    db.engine = None
    db.AsyncSessionLocal = None
    yield
    if db.engine is not None:
        session_loop.run_until_complete(db.engine.dispose())
        db.engine = None

    if db.AsyncSessionLocal is not None:
        db.AsyncSessionLocal = None
    mp.undo()


async def _reset_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(db.Base.metadata.drop_all)
        await conn.run_sync(db.Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_schema(request, session_loop):
    """Reset the schema, the live-state cache and the broadcast channel."""

    broadcast.channel = broadcast.LocalChannel()
    session_loop.run_until_complete(live_state_cache.clear())
    if request.node.get_closest_marker("preserve_schema"):
        yield
        return

    engine = db.engine or db.get_engine()
    session_loop.run_until_complete(_reset_schema(engine))
    yield


async def _seed_squads() -> None:
    async with db.session_factory()() as session:
        session.add(models.Tournament(id="cup", name="Test Cup"))
        for pid in SQUAD_A + SQUAD_B:
            session.add(models.Player(id=pid, name=f"Player {pid.upper()}"))
        session.add(
            models.Team(id=TEAM_A, name="Alpha", tournament_id="cup", player_ids=SQUAD_A)
        )
        session.add(
            models.Team(id=TEAM_B, name="Bravo", tournament_id="cup", player_ids=SQUAD_B)
        )
        await session.commit()


@pytest.fixture
def squads(session_loop):
    """Two eleven-player sides: ``team-a`` (a1..a11) and ``team-b`` (b1..b11)."""

    session_loop.run_until_complete(_seed_squads())
    return {TEAM_A: SQUAD_A, TEAM_B: SQUAD_B}


def _token(sub: str = "scorer-1", **claims) -> str:
    return jwt.encode({"sub": sub, **claims}, TEST_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def make_token():
    return _token


@pytest.fixture
def scorer_headers():
    return {"Authorization": f"Bearer {_token(roles=['scorer'])}"}
