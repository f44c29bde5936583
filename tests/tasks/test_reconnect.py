import logging
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from hifz.backend.config.config import settings
from hifz.backend.tasks.reconnect import RECONNECT_JOB_ID, PostgresConnector


class FlakyPoolFactory:
    """Fails the first `failures` calls, then hands out a mock pool."""

    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0
        self.pool = AsyncMock()

    async def __call__(self, dsn: str):
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError("Connection refused")
        return self.pool


@pytest.fixture
def schema_client():
    with patch("hifz.backend.tasks.reconnect.AsyncPostgresClient") as client_cls:
        client_cls.return_value.ensure_schema = AsyncMock()
        yield client_cls


@pytest.fixture
def scheduler():
    mock_scheduler = MagicMock()
    mock_scheduler.get_job.return_value = object()
    return mock_scheduler


@pytest.mark.asyncio
class TestPostgresConnector:

    async def test_first_attempt_succeeds(self, schema_client, scheduler):
        factory = FlakyPoolFactory(failures=0)
        on_connect = AsyncMock()
        connector = PostgresConnector("postgresql://db/hifz", scheduler, on_connect=on_connect, pool_factory=factory)

        assert await connector.connect() is True

        assert connector.is_connected
        assert connector.pool is factory.pool
        schema_client.assert_called_once_with(pool=factory.pool)
        on_connect.assert_awaited_once_with(factory.pool)

    async def test_failed_attempt_is_counted(self, schema_client, scheduler):
        connector = PostgresConnector("postgresql://db/hifz", scheduler, pool_factory=FlakyPoolFactory(failures=1))

        assert await connector.connect() is False
        assert connector.failed_attempts == 1
        assert not connector.is_connected

    async def test_schema_failure_closes_the_pool(self, schema_client, scheduler):
        factory = FlakyPoolFactory(failures=0)
        schema_client.return_value.ensure_schema.side_effect = RuntimeError("permission denied")
        connector = PostgresConnector("postgresql://db/hifz", scheduler, pool_factory=factory)

        assert await connector.connect() is False
        factory.pool.close.assert_awaited_once()
        assert connector.pool is None

    async def test_schedule_reconnect_registers_interval_job(self, scheduler):
        connector = PostgresConnector("postgresql://db/hifz", scheduler)

        connector.schedule_reconnect()

        scheduler.add_job.assert_called_once()
        args, kwargs = scheduler.add_job.call_args
        assert args == (connector.reconnect_job, "interval")
        assert kwargs["seconds"] == settings.DB_RETRY_DELAY_SECONDS
        assert kwargs["id"] == RECONNECT_JOB_ID
        assert kwargs["max_instances"] == 1

    async def test_retries_until_connected_then_removes_job(self, schema_client, scheduler):
        factory = FlakyPoolFactory(failures=2)
        on_connect = AsyncMock()
        connector = PostgresConnector("postgresql://db/hifz", scheduler, on_connect=on_connect, pool_factory=factory)

        assert await connector.connect() is False
        await connector.reconnect_job()
        scheduler.remove_job.assert_not_called()

        await connector.reconnect_job()

        assert connector.is_connected
        assert connector.failed_attempts == 0
        on_connect.assert_awaited_once()
        scheduler.remove_job.assert_called_once_with(RECONNECT_JOB_ID)

    async def test_log_level_escalates_after_max_retries(self, schema_client, scheduler, caplog, monkeypatch):
        monkeypatch.setattr(settings, "DB_MAX_RETRIES", 2)
        connector = PostgresConnector("postgresql://db/hifz", scheduler, pool_factory=FlakyPoolFactory(failures=10))

        with caplog.at_level(logging.WARNING, logger="hifz.backend.tasks.reconnect"):
            for _ in range(3):
                await connector.connect()

        levels = [record.levelno for record in caplog.records if record.name == "hifz.backend.tasks.reconnect"]
        assert levels == [logging.WARNING, logging.WARNING, logging.ERROR]

    async def test_on_connect_failure_does_not_undo_the_connection(self, schema_client, scheduler):
        on_connect = AsyncMock(side_effect=RuntimeError("seed failed"))
        connector = PostgresConnector("postgresql://db/hifz", scheduler, on_connect=on_connect, pool_factory=FlakyPoolFactory(failures=0))

        assert await connector.connect() is True
        assert connector.is_connected

    async def test_close(self, schema_client, scheduler):
        factory = FlakyPoolFactory(failures=0)
        connector = PostgresConnector("postgresql://db/hifz", scheduler, pool_factory=factory)
        await connector.connect()

        await connector.close()

        factory.pool.close.assert_awaited_once()
        assert connector.pool is None
