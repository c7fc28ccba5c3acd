"""Pytest configuration and shared fixtures.

This module provides fixtures for testing gearledger, including temporary
databases, a controllable clock, the managers and sample data.
"""

import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path
from typing import Generator

import pytest

from gearledger.config import reset_config
from gearledger.db.models import Category, Item, Member
from gearledger.db.schemas import CategoryCreate, ItemCreate, MemberCreate, MemberRole
from gearledger.db.sqlite import Database, reset_db
from gearledger.lending import LendingLedger
from gearledger.registry import ItemRegistry, MemberRegistry

START = datetime(2026, 3, 2, 9, 0, 0)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, now: datetime) -> None:
        self.current = now


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    # Set environment variable for test database
    os.environ["GEARLEDGER_DB_PATH"] = str(temp_db_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    database.engine.dispose()
    reset_db()
    reset_config()
    if "GEARLEDGER_DB_PATH" in os.environ:
        del os.environ["GEARLEDGER_DB_PATH"]


@pytest.fixture
def memory_db() -> Database:
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    database.create_tables()
    return database


# ============================================================================
# Clock and Managers
# ============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at START; call clock.advance(days=...) to move it."""
    return FrozenClock()


@pytest.fixture
def items(db: Database) -> ItemRegistry:
    return ItemRegistry(db)


@pytest.fixture
def members(db: Database) -> MemberRegistry:
    return MemberRegistry(db)


@pytest.fixture
def ledger(db: Database, clock: FrozenClock) -> LendingLedger:
    return LendingLedger(db, clock=clock)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def category(items: ItemRegistry) -> Category:
    """A 'Tents' category."""
    return items.create_category(CategoryCreate(name="Tents", description="Shelter"))


@pytest.fixture
def tent(items: ItemRegistry, category: Category) -> Item:
    """A single tent with a serial number."""
    return items.create_item(
        ItemCreate(name="Tent A", category_id=category.id, serial_number="T-001")
    )


@pytest.fixture
def stove(items: ItemRegistry, category: Category) -> Item:
    """A second item in the same category."""
    return items.create_item(
        ItemCreate(name="Camp Stove", category_id=category.id, serial_number="S-100")
    )


@pytest.fixture
def alice(members: MemberRegistry) -> Member:
    """A member with an email address."""
    return members.create_member(
        MemberCreate(name="Alice Walker", email="alice@example.org", role=MemberRole.LEADER)
    )


@pytest.fixture
def bob(members: MemberRegistry) -> Member:
    """A member with an email address."""
    return members.create_member(MemberCreate(name="Bob Stone", email="bob@example.org"))


@pytest.fixture
def carol(members: MemberRegistry) -> Member:
    """A member without an email address."""
    return members.create_member(MemberCreate(name="Carol Finch"))
