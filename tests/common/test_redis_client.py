"""Unit tests for RedisClient using fakeredis."""

import time
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from common.redis_client import RedisClient


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisClientConnection:
    """Test RedisClient connection lifecycle."""

    async def test_fixture_client_is_connected(self, fake_redis_client):
        assert fake_redis_client.connected is True
        assert fake_redis_client.client is not None

    async def test_disconnect_closes_connection(self, fake_redis_client):
        await fake_redis_client.disconnect()

        assert fake_redis_client.connected is False
        assert fake_redis_client.client is None

    async def test_health_check_returns_healthy_when_connected(self, fake_redis_client):
        health = await fake_redis_client.health_check()

        assert health == {"connected": True, "status": "healthy"}

    async def test_health_check_returns_disconnected_when_no_client(self):
        client = RedisClient()

        health = await client.health_check()

        assert health["connected"] is False
        assert health["status"] == "disconnected"
        assert "error" in health

    async def test_connect_gives_up_after_max_retries(self):
        client = RedisClient("redis://unreachable:6379")
        failing = AsyncMock()
        failing.ping = AsyncMock(side_effect=RedisConnectionError("refused"))

        with patch("common.redis_client.redis.from_url", return_value=failing), patch(
            "common.redis_client.asyncio.sleep", AsyncMock()
        ) as mock_sleep, patch("common.redis_client.settings") as mock_settings:
            mock_settings.redis_reconnect_max_retries = 3
            mock_settings.redis_reconnect_initial_delay = 1.0
            mock_settings.redis_reconnect_max_delay = 30.0
            await client.connect()

        assert client.connected is False
        assert failing.ping.await_count == 3
        assert mock_sleep.await_count == 2


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisClientEnsureConnected:
    """Test on-demand reconnection."""

    async def test_recent_health_check_skips_ping(self, fake_redis_client):
        fake_redis_client._last_ping_at = time.monotonic()

        with patch.object(fake_redis_client.client, "ping", AsyncMock()) as mock_ping:
            assert await fake_redis_client.ensure_connected() is True

        mock_ping.assert_not_called()

    async def test_stale_health_check_pings(self, fake_redis_client):
        fake_redis_client._last_ping_at = time.monotonic() - 60

        assert await fake_redis_client.ensure_connected() is True
        assert fake_redis_client._last_ping_at > time.monotonic() - 5

    async def test_lost_connection_triggers_reconnect(self, fake_redis_client):
        with patch.object(
            fake_redis_client.client,
            "ping",
            AsyncMock(side_effect=RedisConnectionError("gone")),
        ), patch.object(
            fake_redis_client, "_reconnect_with_backoff", AsyncMock()
        ) as mock_reconnect:
            result = await fake_redis_client.ensure_connected()

        assert result is False
        mock_reconnect.assert_awaited_once()
