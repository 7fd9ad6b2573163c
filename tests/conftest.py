"""
Pytest configuration and fixtures for DiagFlow Backend tests.
"""

import os
import shutil
import smtplib
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing the app
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="diagflow_test_uploads_")
os.environ["EMAIL_USER"] = ""
os.environ["EMAIL_PASS"] = ""
os.environ["CLEANUP_DELAY_SECONDS"] = "0.1"

from diagflow_backend.file_store import FileStore
from diagflow_backend.main import app


# Smallest PNG signature plus IHDR start; content is never decoded server-side.
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"


class RecordingTransport:
    """Transport double that keeps every message it is asked to send."""

    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)


class FailingTransport:
    """Transport double that always fails like an unreachable SMTP relay."""

    def __init__(self, error="relay refused"):
        self.error = error
        self.calls = 0

    def send(self, message):
        self.calls += 1
        raise smtplib.SMTPException(self.error)


@pytest.fixture(scope="session", autouse=True)
def upload_dir():
    """The app's upload directory, removed after all tests."""
    path = Path(os.environ["UPLOAD_DIR"])
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def file_store(tmp_path):
    """An isolated file store rooted in a per-test directory."""
    return FileStore(root=tmp_path / "store")


@pytest.fixture
def recording_transport():
    return RecordingTransport()


@pytest.fixture
def failing_transport():
    return FailingTransport()


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def session_payload():
    """A realistic session as the mobile client posts it."""
    return {
        "vehicleInfo": {
            "roNumber": "RO-1042",
            "year": "2019",
            "make": "Honda",
            "model": "Civic",
            "vin": "2HGFC2F59KH512345",
        },
        "completedSteps": 2,
        "totalSteps": 3,
        "steps": [
            {
                "id": 1,
                "title": "Scan for trouble codes",
                "completed": True,
                "notes": "P0301 cylinder 1 misfire",
                "images": ["a.jpg", "b.jpg"],
            },
            {"id": 2, "title": "Inspect ignition coil", "completed": False, "notes": "skipped"},
            {"id": 3, "title": "Swap spark plugs", "completed": True, "images": []},
        ],
    }
