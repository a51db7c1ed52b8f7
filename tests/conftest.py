import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport

from fixflow.api.main import app
from fixflow.api.deps import get_engine
from fixflow.services.flow_store import InMemoryFlowStore
from fixflow.workflow.engine import FlowEngine


class FakeClock:
    """Controllable wall clock for TTL tests."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 8, 31, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryFlowStore()


@pytest.fixture
def engine(store, clock):
    return FlowEngine(store, clock=clock, ttl=timedelta(minutes=30), max_conflict_retries=3)


@pytest_asyncio.fixture(scope="function")
async def async_client(engine):
    # ASGITransport does not run the lifespan, so hand the routes our engine directly
    app.dependency_overrides[get_engine] = lambda: engine
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides = {}
