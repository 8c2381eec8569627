import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from src.api.deps import get_engine, get_settings
from src.app_shell.config import validate_ops_rules
from src.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules and validate on startup (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
    except (FileNotFoundError, ValueError) as e:
        print(f"CRITICAL: Rules load failed: {e}", file=sys.stderr)
        sys.exit(1)

    validate_ops_rules(rules)
    logger.info(f"Rules loaded from {settings.rules_path}")

    # Apply migrations before the first request
    get_engine(settings)

    yield


app = FastAPI(
    title="IncentApply Accounting API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- Routers ---
from src.api.routes import cycles, progress, settlements  # noqa: E402

app.include_router(cycles.router, prefix="/api/cycles", tags=["Cycles"])
app.include_router(progress.router, prefix="/api/progress", tags=["Progress"])
app.include_router(settlements.router, prefix="/api/settlements", tags=["Settlements"])


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "accounting"}
