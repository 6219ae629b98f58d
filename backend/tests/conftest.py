"""
Pytest configuration for backend tests.

AnyIO is pinned to the asyncio backend; python-socketio's AsyncServer only
runs on asyncio.
"""
import pytest

from backend.app.game_logic import GameManager

FIXED_TS = 1700000000000


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def manager():
    return GameManager(groups=3, clock=lambda: FIXED_TS)


@pytest.fixture
def fill_group(manager):
    """Register one connection per role into a group; returns the sids in role order."""

    def _fill(group=1, count=6, prefix=None):
        prefix = prefix or f"g{group}"
        sids = []
        for i in range(count):
            sid = f"{prefix}-sid-{i}"
            manager.register(sid, f"{prefix}-player-{i}", group)
            sids.append(sid)
        return sids

    return _fill
