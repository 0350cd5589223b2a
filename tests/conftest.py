import os
import sys
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

# Ensure project root is on sys.path so 'src' is importable during tests
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("USE_LOCAL_DB", "0")
os.environ.setdefault("PROFILEKIT_LOG_LEVEL", "WARNING")


@pytest.fixture()
def app():
    # lazy import after env configured; a fresh app means a fresh in-memory store
    from src.main import create_app

    return create_app()


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture()
async def asgi_http(app):
    """httpx client wired straight into the app, for exercising the API client end to end."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport) as http:
        yield http


@pytest.fixture()
def profile_payload() -> dict:
    return {
        "fullName": "Ada Lovelace",
        "email": "ada@example.com",
        "phoneNumber": "+44 20 7946 0958",
        "bio": "Analyst of the Analytical Engine",
        "avatarUrl": "",
        "dateOfBirth": "1815-12-10",
        "location": "London",
    }
