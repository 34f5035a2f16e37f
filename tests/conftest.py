"""
Shared pytest fixtures for all test modules.

IMPORTANT: TESTING must be set before the app is imported so the lifespan
skips the background cleanup task. The Firebase web-config values are set
too so a fresh AuthState starts without a configuration notice.
"""

import os

os.environ["TESTING"] = "true"
os.environ.setdefault("FIREBASE_AUTH_DOMAIN", "kyc-shield-test.firebaseapp.com")
os.environ.setdefault("FIREBASE_PROJECT_ID", "kyc-shield-test")
os.environ.setdefault("FIREBASE_APP_ID", "1:1234567890:web:abcdef")

import time
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from tests.mocks.camera_mock import FakeCameraFactory
from tests.mocks.firebase_mock import MockFirestore
from tests.mocks.redis_mock import MockRedis

# App import happens AFTER the environment is prepared above.
from kyc_shield.main import app  # noqa: E402
from kyc_shield.config import settings  # noqa: E402


# ---------------------------------------------------------------------------
# Core infrastructure fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_firebase(monkeypatch):
    """Replace firebase.db with an in-memory MockFirestore."""
    from kyc_shield.integrations import firebase as fb

    mock_db = MockFirestore()
    monkeypatch.setattr(fb, "db", mock_db)
    return mock_db


@pytest.fixture
def no_firebase(monkeypatch):
    from kyc_shield.integrations import firebase as fb

    monkeypatch.setattr(fb, "db", None)


@pytest.fixture
def mock_redis(monkeypatch):
    """Replace redis_client.client with an in-memory MockRedis."""
    from kyc_shield.integrations import redis_client as rc

    mock_rc = MockRedis()
    monkeypatch.setattr(rc, "client", mock_rc)
    return mock_rc


@pytest.fixture
def fast_prompts(monkeypatch):
    """Collapse liveness dwell times so a full run takes milliseconds."""
    monkeypatch.setattr(settings, "liveness_prompt_dwell_sec", 0)
    monkeypatch.setattr(settings, "hold_still_dwell_sec", 0)


@pytest.fixture
def camera_factory():
    return FakeCameraFactory()


@pytest.fixture
def registry(monkeypatch, camera_factory):
    """Fresh ClientRegistry handing out FakeCameras."""
    from kyc_shield.core import dependencies
    from kyc_shield.services.clients import ClientRegistry

    reg = ClientRegistry(camera_factory=camera_factory)
    monkeypatch.setattr(dependencies, "registry", reg)
    return reg


@pytest.fixture
def mock_analyze():
    """Patch the Gemini verdict call; set .return_value / .side_effect per test."""
    with patch(
        "kyc_shield.integrations.gemini.client.analyze_face_frame",
        new_callable=AsyncMock,
    ) as mocked:
        yield mocked


@pytest.fixture
def client(mock_firebase, mock_redis, registry):
    """
    FastAPI TestClient with mocked Firebase, Redis and camera.

    initialize() calls are patched to no-ops so they can't overwrite our mocks
    or attempt real network connections during the lifespan startup.
    """
    with (
        patch("kyc_shield.integrations.firebase.initialize"),
        patch("kyc_shield.integrations.redis_client.initialize"),
        patch("kyc_shield.integrations.gemini.client.initialize"),
    ):
        with TestClient(app, raise_server_exceptions=False) as c:
            yield c


# ---------------------------------------------------------------------------
# Shared test-data helpers
# ---------------------------------------------------------------------------

DEVICE_ID = "device-test-001"
HEADERS = {"X-Device-ID": DEVICE_ID}

APPROVED_RESPONSE = {
    "isReal": True,
    "confidence": 97,
    "issues": [],
    "message": "Clear match",
}

SPOOF_RESPONSE = {
    "isReal": False,
    "confidence": 88,
    "issues": ["Screen Moire pattern", "Flat texture"],
    "message": "Photo of a screen detected",
}


def wait_for_stage(client, stage: str, headers=HEADERS, attempts: int = 300) -> dict:
    """Polls the session endpoint until it reports `stage`."""
    body = {}
    for _ in range(attempts):
        body = client.get("/api/verification/session", headers=headers).json()
        if body.get("stage") == stage:
            return body
        time.sleep(0.01)
    raise AssertionError(f"Session never reached {stage!r}; last state: {body}")
