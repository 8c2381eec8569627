import logging
import os
from functools import lru_cache
from pathlib import Path

from fastapi import Depends

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.rules.loader import load_rules
from src.services.engine import AccountingEngine

logger = logging.getLogger(__name__)


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("INCENTAPPLY_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "incentapply.db")
        self.rules_path = Path(
            os.environ.get("INCENTAPPLY_RULES_PATH", str(self.base_dir / "rules.yaml"))
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Engine ---
@lru_cache
def _build_engine(db_path: str, rules_path: Path) -> AccountingEngine:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    SQLiteMigrator(db_path).run_migrations()
    logger.info(f"Accounting store ready at {db_path}")
    return AccountingEngine.create(db_path, load_rules(rules_path))


def get_engine(settings: Settings = Depends(get_settings)) -> AccountingEngine:
    """Process-wide engine over the configured SQLite store."""
    return _build_engine(settings.db_path, settings.rules_path)
