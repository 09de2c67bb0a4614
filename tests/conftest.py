"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest

from alt_account_guard.alerter.dispatcher import AlertDeliveryError
from alt_account_guard.alerter.models import FormattedAlert
from alt_account_guard.config import DatabaseSettings, Settings
from alt_account_guard.pipeline import CheckPipeline
from alt_account_guard.storage.database import DatabaseManager


class RecordingChannel:
    """Alert channel that keeps delivered alerts in memory."""

    def __init__(self, name: str = "recording", *, fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.sent: list[FormattedAlert] = []
        self.attempts = 0

    async def send(self, alert: FormattedAlert) -> None:
        self.attempts += 1
        if self.fail:
            raise AlertDeliveryError(f"{self.name} is down")
        self.sent.append(alert)


@pytest.fixture
def database_url(tmp_path) -> str:
    """File-backed SQLite database, so concurrent sessions share state."""
    return f"sqlite+aiosqlite:///{tmp_path / 'guard.db'}"


@pytest.fixture
async def db(database_url: str):
    """Database manager with the schema created."""
    manager = DatabaseManager(database_url)
    await manager.init_schema_async()
    yield manager
    await manager.dispose_async()


@pytest.fixture
def settings(database_url: str) -> Settings:
    """Settings pointing at the test database."""
    return Settings(database=DatabaseSettings(DATABASE_URL=database_url))


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def failing_channel() -> RecordingChannel:
    return RecordingChannel("broken", fail=True)


@pytest.fixture
async def pipeline(settings: Settings, db: DatabaseManager, channel: RecordingChannel):
    """Running check pipeline that alerts into ``channel``."""
    check_pipeline = CheckPipeline(settings, db=db, channels=[channel], dry_run=False)
    await check_pipeline.start()
    yield check_pipeline
    await check_pipeline.stop()
