import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Modules live at the project root (flat layout).
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import AppConfig  # noqa: E402
from hashing import digest  # noqa: E402
from main import create_app  # noqa: E402
from storage import TaskStore  # noqa: E402
from token_manager import CredentialGate  # noqa: E402

TEST_PASSWORD = "randomforest"

ENV_VARS = [
    "TASKMATE_PORT",
    "TASKMATE_API_KEY",
    "TASKMATE_PASSWORD_HASH",
    "TASKMATE_REQUIRE_PASSWORD",
    "TASKMATE_HOST",
    "TASKMATE_DATA_FILE",
    "TASKMATE_CONFIG_FILE",
    "TASKMATE_REQUEST_TIMEOUT",
]


# This fixture is automatically used by every test.
@pytest.fixture(autouse=True)
def isolated_workdir(tmp_path, monkeypatch):
    """
    Runs each test inside its own temporary directory with no TASKMATE_*
    variables set, so tasks.json / config.json never leak between tests.
    """
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path


@pytest.fixture
def data_file(tmp_path) -> Path:
    return tmp_path / "tasks.json"


@pytest.fixture
def config_file(tmp_path) -> Path:
    return tmp_path / "config.json"


@pytest.fixture
def config(data_file, config_file) -> AppConfig:
    return AppConfig(
        password_hash=digest(TEST_PASSWORD),
        data_file=str(data_file),
        config_file=str(config_file),
    )


@pytest.fixture
def store(data_file) -> TaskStore:
    return TaskStore(data_file)


@pytest.fixture
def gate(config, config_file) -> CredentialGate:
    return CredentialGate(config, config_file)


@pytest.fixture
def client(config, store, gate):
    app = create_app(config, store, gate)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def token(client) -> str:
    response = client.post("/api/v1/auth/token", json={})
    assert response.status_code == 201
    return response.json()["token"]


@pytest.fixture
def auth_headers(token) -> dict:
    return {"X-API-Token": token}
