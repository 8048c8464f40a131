"""
Test fixtures for chat protocol tests.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
protocol_dir = Path(__file__).parent.parent
project_root = protocol_dir.parent.parent
sys.path.insert(0, str(project_root))

from core.db import get_connection, init_database
from core.identity import Identity, create_identity
from core.node_store import NodeStore
from core.scheduler import TaskScheduler
from protocols.chat.tests.helpers import FakeClock


@pytest.fixture
def db():
    """Shared in-memory database so several identities see the same log."""
    conn = get_connection(":memory:")
    init_database(conn)
    yield conn
    conn.close()


@pytest.fixture
def alice() -> Identity:
    return create_identity("alice")


@pytest.fixture
def bob() -> Identity:
    return create_identity("bob")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> TaskScheduler:
    return TaskScheduler(clock=clock)


@pytest.fixture
def alice_store(db, alice, clock):
    store = NodeStore(alice, db=db, clock=clock)
    yield store
    store.close()


@pytest.fixture
def bob_store(db, bob, clock):
    store = NodeStore(bob, db=db, clock=clock)
    yield store
    store.close()
