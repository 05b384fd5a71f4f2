"""Integration conftest — a session-scoped Redis 7 testcontainer.

Overrides the in-process ``redis_client`` fixture so integration tests
run against a real server.  The tier is skipped when Docker is not
reachable.
"""

from __future__ import annotations

import logging
import time

import pytest
import redis as sync_redis
from redis.asyncio import Redis
from testcontainers.core.container import DockerContainer

logger = logging.getLogger(__name__)


@pytest.fixture(scope="session")
def redis_container():
    """Spin up a Redis 7 container and yield its URL."""
    container = DockerContainer("redis:7-alpine").with_exposed_ports(6379)
    try:
        container.start()
    except Exception as exc:
        pytest.skip(f"Docker is not available: {exc}")
    try:
        host = container.get_container_host_ip()
        port = container.get_exposed_port(6379)
        url = f"redis://{host}:{port}"

        r = sync_redis.Redis(host=host, port=int(port))
        max_attempts = 30
        for attempt in range(max_attempts):
            try:
                r.ping()
                break
            except sync_redis.RedisError as exc:
                if attempt == max_attempts - 1:
                    raise
                logger.debug(
                    "Redis not ready (attempt %d/%d): %s",
                    attempt + 1,
                    max_attempts,
                    exc,
                )
                time.sleep(1)
            finally:
                r.close()

        yield url
    finally:
        container.stop()


@pytest.fixture()
async def redis_client(redis_container):
    """Yield an async Redis client connected to the test container."""
    client = Redis.from_url(redis_container)
    await client.flushdb()
    yield client
    await client.flushdb()
    await client.aclose()
