from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from core.config import Settings
from core.state import ZoneRegistry

TOKEN = "secret"


@pytest.fixture
def zones_dir(tmp_path: Path) -> Path:
    path = tmp_path / "dns"
    path.mkdir()
    return path


@pytest.fixture
def settings(zones_dir: Path) -> Settings:
    return Settings(HTTP_TOKEN=TOKEN, ZONES_PATH=str(zones_dir), HTTP_PORT=0)


@pytest.fixture
def registry() -> ZoneRegistry:
    return ZoneRegistry()


@pytest.fixture
def client(settings: Settings, registry: ZoneRegistry) -> TestClient:
    return TestClient(create_app(settings, registry))


@pytest.fixture
def auth() -> dict[str, str]:
    return {"Authorization": f"Bearer {TOKEN}"}
