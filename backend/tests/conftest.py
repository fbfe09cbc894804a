"""
StudioGen Backend - Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Environment variables are set before any studiogen import so that
       the settings singleton, the engine and the service singletons are
       built against a throwaway SQLite database and storage directory.

Fixture Hierarchy:
    Function-scoped (fresh for each test):
    ├── database (autouse): create_all / drop_all on the SQLite file
    ├── client: HTTPX AsyncClient over ASGITransport
    ├── png_bytes / png_base64 / png_data_url: a real Pillow-made image
    ├── auth_headers: signs a user up and returns its Bearer header
    └── temp_storage: isolated directory for FileService tests
"""

import base64
import io
import os
import tempfile
from typing import Dict

_test_dir = tempfile.mkdtemp(prefix="studiogen_test_")

os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_dir}/test.db"
os.environ["STORAGE_ROOT"] = os.path.join(_test_dir, "storage")
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["GOOGLE_CLIENT_ID"] = "test-client.apps.googleusercontent.com"
os.environ["GOOGLE_VERIFY_SIGNATURE"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BCRYPT_ROUNDS"] = "4"
# The app under test is shared, so are its rate limiter windows
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["AUTH_RATE_LIMIT_REQUESTS"] = "100000"
os.environ["PASSWORD_RESET_RATE_LIMIT_REQUESTS"] = "100000"
os.environ["GENERATION_RATE_LIMIT_REQUESTS"] = "100000"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from PIL import Image  # noqa: E402

from studiogen.database import Base, engine  # noqa: E402
import studiogen.models  # noqa: E402,F401

TEST_PASSWORD = "Sup3rSecret"


@pytest_asyncio.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def client():
    """
    Usage:
        async def test_health(client):
            response = await client.get("/health")
    """
    from studiogen.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_base64(png_bytes) -> str:
    return base64.b64encode(png_bytes).decode("ascii")


@pytest.fixture
def png_data_url(png_base64) -> str:
    return f"data:image/png;base64,{png_base64}"


async def signup_user(
    client: AsyncClient,
    identifier: str = "user@example.com",
    password: str = TEST_PASSWORD,
    full_name: str = "Test User",
) -> Dict:
    """Sign up through the API and return the response's data payload."""
    response = await client.post(
        "/api/auth/signup",
        json={"identifier": identifier, "password": password, "fullName": full_name},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


def bearer(access_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


@pytest_asyncio.fixture
async def auth_headers(client) -> Dict[str, str]:
    data = await signup_user(client)
    return bearer(data["accessToken"])
