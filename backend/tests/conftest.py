import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from botwatch.detection.domain import container as detection_container
from botwatch.detection.domain.config import DetectionConfig
from botwatch.detection.domain.reputation import InMemoryReputationStore
from botwatch.settings import settings

ADMIN_TOKEN = "test-admin-token"


class FakeClock:
	"""Manually advanced clock in seconds."""

	def __init__(self, start: float = 1_700_000_000.0) -> None:
		self.now = start

	def __call__(self) -> float:
		return self.now

	def advance(self, seconds: float) -> float:
		self.now += seconds
		return self.now


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock()


@pytest_asyncio.fixture
async def fake_redis():
	client = FakeRedis(decode_responses=True)
	try:
		yield client
	finally:
		await client.flushall()
		await client.aclose()


@pytest.fixture(autouse=True)
def force_test_settings():
	"""Ensure a consistent test environment."""
	original_token = settings.obs_admin_token
	original_fail_closed = settings.bot_check_fail_closed
	original_backend = settings.reputation_backend
	settings.obs_admin_token = ADMIN_TOKEN
	settings.bot_check_fail_closed = False
	settings.reputation_backend = "memory"
	try:
		yield
	finally:
		settings.obs_admin_token = original_token
		settings.bot_check_fail_closed = original_fail_closed
		settings.reputation_backend = original_backend


@pytest.fixture
def reputation_store() -> InMemoryReputationStore:
	return InMemoryReputationStore()


@pytest_asyncio.fixture
async def detection(clock, reputation_store):
	"""Install a detection container driven by the fake clock."""
	built = detection_container.build_container(
		store=reputation_store,
		config=DetectionConfig(),
		clock=clock,
	)
	detection_container.configure(built)
	try:
		yield built
	finally:
		await detection_container.shutdown()


@pytest_asyncio.fixture
async def api_client(detection):
	from botwatch.main import create_app

	app = create_app(detection)
	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
	return {"X-Admin-Token": ADMIN_TOKEN}
