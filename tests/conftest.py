"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("EMAIL_TEST_MODE", "true")

from datetime import datetime
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from uptime_monitor.config import Config, EmailConfig, MonitoringConfig, NotificationsConfig
from uptime_monitor.core.history import HistoryRecorder
from uptime_monitor.core.notifier import InMemoryNotifier
from uptime_monitor.core.prober import ProbeResult
from uptime_monitor.core.scheduler import MonitorScheduler
from uptime_monitor.core.store import MonitorStore
from uptime_monitor.core.transitions import TransitionNotifier
from uptime_monitor.database.base import Base
from uptime_monitor.database.session import get_db
from uptime_monitor.models import Monitor, User
from uptime_monitor.models.monitor import MonitorStatus


# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class ScriptedProber:
    """
    Prober double returning scripted statuses per URL.

    Each call to ``probe`` pops the next entry for the URL; once the script
    is exhausted the last entry repeats. Unknown URLs are up. An entry is a
    status or a complete ``ProbeResult``.
    """

    def __init__(self, scripts: Optional[Dict[str, List[MonitorStatus]]] = None):
        self.scripts = {url: list(statuses) for url, statuses in (scripts or {}).items()}
        self.calls: List[str] = []
        self.started = False
        self.closed = False

    def script(self, url: str, *statuses) -> None:
        self.scripts[url] = list(statuses)

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    async def probe(self, url: str) -> ProbeResult:
        self.calls.append(url)
        script = self.scripts.get(url) or [MonitorStatus.UP]
        status = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(status, ProbeResult):
            return ProbeResult(
                status=status.status,
                latency_ms=status.latency_ms,
                error_detail=status.error_detail,
                status_code=status.status_code
            )
        if status == MonitorStatus.UP:
            return ProbeResult(status=status, latency_ms=42, status_code=200)
        return ProbeResult(status=status, error_detail="HTTP 503", latency_ms=17, status_code=503)


@pytest.fixture
async def db_engine():
    """Create an isolated in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Create session maker for tests."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
async def sample_user(db_session: AsyncSession) -> User:
    """Create sample user for testing."""
    user = User(email="owner@example.com")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def make_monitor(db_session: AsyncSession, sample_user: User):
    """Factory inserting monitors owned by the sample user."""

    async def _make(
        url: str = "https://example.com",
        name: Optional[str] = "Example",
        status: MonitorStatus = MonitorStatus.PENDING,
        notifications_enabled: bool = True,
        last_notification_sent: Optional[datetime] = None
    ) -> Monitor:
        monitor = Monitor(
            user_id=sample_user.id,
            url=url,
            name=name,
            status=MonitorStatus(status).value,
            notifications_enabled=notifications_enabled,
            last_notification_sent=last_notification_sent
        )
        db_session.add(monitor)
        await db_session.commit()
        await db_session.refresh(monitor)
        return monitor

    return _make


@pytest.fixture
async def sample_monitor(make_monitor) -> Monitor:
    """Create sample monitor for testing."""
    return await make_monitor()


@pytest.fixture
def store(session_maker) -> MonitorStore:
    return MonitorStore(session_maker)


@pytest.fixture
def history(session_maker) -> HistoryRecorder:
    return HistoryRecorder(session_maker)


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def prober() -> ScriptedProber:
    return ScriptedProber()


@pytest.fixture
def detector(notifier, store, history) -> TransitionNotifier:
    return TransitionNotifier(notifier, store, history)


@pytest.fixture
def scheduler(prober, history, detector, store) -> MonitorScheduler:
    """Scheduler wired to the test database with no delay between monitors."""
    return MonitorScheduler(
        prober=prober,
        history=history,
        detector=detector,
        store=store,
        interval_ms=60000,
        check_delay=0
    )


@pytest.fixture
def test_config() -> Config:
    """Create test configuration."""
    return Config(
        monitoring=MonitoringConfig(interval_ms=60000, check_delay=0),
        notifications=NotificationsConfig(email=EmailConfig(test_mode=True))
    )


@pytest.fixture
def test_app(session_maker, scheduler, test_config):
    """FastAPI app bound to the test database, without running the lifespan."""
    from uptime_monitor.core.rate_limiter import limiter
    from uptime_monitor.main import app

    async def get_test_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = get_test_db
    app.state.config = test_config
    app.state.scheduler = scheduler
    limiter.enabled = False

    yield app

    limiter.enabled = True
    app.dependency_overrides.clear()
    del app.state.scheduler
