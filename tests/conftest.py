import os
from datetime import UTC, datetime
from pathlib import Path

import pytest

from src.adapters.clock import FrozenClock
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.rules.loader import load_rules
from src.rules.models import Rules
from src.services.engine import AccountingEngine, EngineDefaults

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.fixture
def test_data_dir(tmp_path):
    return str(tmp_path)


@pytest.fixture
def rules() -> Rules:
    """Load REAL rules from the project root."""
    rules_path = PROJECT_ROOT / "rules.yaml"
    if not rules_path.exists():
        raise FileNotFoundError(f"Rules not found at {rules_path}")
    return load_rules(rules_path)


@pytest.fixture
def clock() -> FrozenClock:
    """Monday 2025-03-10 08:00 in New York, inside weekly-2025-03-07."""
    return FrozenClock(datetime(2025, 3, 10, 12, 0, tzinfo=UTC))


@pytest.fixture
def db_path(test_data_dir) -> str:
    """Migrated SQLite database in a temp dir."""
    path = os.path.join(test_data_dir, "incentapply.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def engine(clock: FrozenClock, rules: Rules) -> AccountingEngine:
    """In-memory engine with the project defaults."""
    return AccountingEngine.in_memory(clock=clock, defaults=EngineDefaults.from_rules(rules))


@pytest.fixture
def sqlite_engine(db_path: str, clock: FrozenClock, rules: Rules) -> AccountingEngine:
    """Engine over a migrated temp SQLite store."""
    return AccountingEngine.create(db_path, rules, clock=clock)
