"""Root conftest — suite markers and an in-process Redis.

Unit tests run against ``fakeredis``; the integration tier brings its own
Redis container (see ``tests/integration/conftest.py``).
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fakeredis import FakeAsyncRedis

from haikuagent.observability import reset_latency_metrics


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Attach suite markers from test path.

    - `tests/unit/*` -> `unit`
    - `tests/integration/*` -> `integration`
    """
    root = Path(__file__).resolve().parents[1]
    for item in items:
        item_path = Path(str(item.fspath)).resolve()
        try:
            rel = item_path.relative_to(root)
        except ValueError:
            continue

        parts = rel.parts
        if len(parts) < 2 or parts[0] != "tests":
            continue
        if parts[1] == "unit":
            item.add_marker(pytest.mark.unit)
        elif parts[1] == "integration":
            item.add_marker(pytest.mark.integration)


@pytest.fixture()
async def redis_client():
    """Yield a fresh in-process async Redis."""
    client = FakeAsyncRedis()
    await client.flushall()
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture(autouse=True)
def clean_latency_metrics():
    reset_latency_metrics()
    yield
    reset_latency_metrics()
