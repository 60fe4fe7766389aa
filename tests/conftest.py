import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
from main import app
from database import Base
from storage import MemStorage, SqlStorage, get_storage

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

@pytest_asyncio.fixture(scope="function")
async def test_db():
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()

@pytest.fixture(scope="function", params=["memory", "sql"])
def storage(request, test_db):
    """Runs each test once per storage backend."""
    if request.param == "memory":
        return MemStorage()
    return SqlStorage(test_db)

@pytest_asyncio.fixture(scope="function")
async def client(storage):
    async def override_get_storage():
        yield storage

    app.dependency_overrides[get_storage] = override_get_storage
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

async def make_user(storage, username, **extra):
    return await storage.create_user({
        "username": username,
        "full_name": username.title(),
        "email": f"{username}@campus.edu",
        **extra,
    })

def ride_fields(**overrides):
    fields = {
        "ride_type": "offer",
        "pickup_location": "North Campus",
        "destination": "Downtown Station",
        "date_time": datetime(2026, 11, 1, 9, 30),
        "available_seats": 3,
        "price": 500,
        "notes": None,
    }
    fields.update(overrides)
    return fields

async def register(client, username):
    """Registers through the API and returns (user, auth headers)."""
    res = await client.post("/users", json={
        "username": username,
        "full_name": username.title(),
        "email": f"{username}@campus.edu",
        "password": f"{username}-secret-pw",
    })
    assert res.status_code == 201, res.text
    data = res.json()
    return data["user"], {"Authorization": f"Bearer {data['access_token']}"}

def ride_payload(**overrides):
    payload = {
        "ride_type": "offer",
        "pickup_location": "North Campus",
        "destination": "Downtown Station",
        "date_time": (datetime(2026, 11, 1, 9, 30) + timedelta(days=overrides.pop("days", 0))).isoformat(),
        "available_seats": 2,
        "price": 750,
    }
    payload.update(overrides)
    return payload
