import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.deps import get_engine
from src.api.routes import cycles, progress, settlements
from src.services.engine import AccountingEngine


@pytest.fixture
def app(engine: AccountingEngine) -> FastAPI:
    """Test FastAPI app with the accounting routes over an in-memory engine."""
    app = FastAPI()
    app.include_router(cycles.router, prefix="/api/cycles")
    app.include_router(progress.router, prefix="/api/progress")
    app.include_router(settlements.router, prefix="/api/settlements")

    app.dependency_overrides[get_engine] = lambda: engine

    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client."""
    return TestClient(app)
