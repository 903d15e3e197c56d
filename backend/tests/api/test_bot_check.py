import asyncio
import time

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient

from botwatch.api.errors import install_error_handlers
from botwatch.detection import BotDetection, check_bot_behavior
from botwatch.detection.domain.reputation import ReputationWriteError
from botwatch.settings import settings


async def _bind_actor(request: Request) -> None:
	actor = request.headers.get("X-Actor")
	if actor:
		request.state.user_id = actor


def _interaction_app() -> FastAPI:
	app = FastAPI()
	install_error_handlers(app)

	@app.post("/posts/{post_id}/like", dependencies=[Depends(_bind_actor)])
	async def like_post(post_id: str, detection: BotDetection = Depends(check_bot_behavior("like"))):
		return {
			"post_id": post_id,
			"is_bot": detection.is_bot,
			"score": detection.score,
			"reasons": list(detection.reasons),
			"suspicious_address": detection.suspicious_address,
			"checked": detection.checked,
		}

	return app


@pytest_asyncio.fixture
async def interaction_client(detection):
	transport = ASGITransport(app=_interaction_app())
	async with AsyncClient(transport=transport, base_url="http://testserver") as client:
		yield client


@pytest.mark.asyncio
async def test_anonymous_requests_are_not_tracked(interaction_client: AsyncClient, detection):
	resp = await interaction_client.post("/posts/p1/like")
	assert resp.status_code == 200
	assert resp.json()["checked"] is False
	assert len(detection.tracker) == 0


@pytest.mark.asyncio
async def test_first_like_is_checked_and_clean(interaction_client: AsyncClient, detection):
	resp = await interaction_client.post("/posts/p1/like", headers={"X-Actor": "u1", "User-Agent": "Mozilla/5.0"})
	body = resp.json()
	assert body["checked"] is True
	assert body["is_bot"] is False
	assert body["reasons"] == []
	# ASGITransport reports 127.0.0.1 as the client host
	assert body["suspicious_address"] is True
	assert len(await detection.tracker.history_for("u1", "127.0.0.1")) == 1


@pytest.mark.asyncio
async def test_bot_burst_records_offense(interaction_client: AsyncClient, detection, clock, reputation_store):
	headers = {"X-Actor": "u1", "User-Agent": "curl/7.64"}
	body = None
	for idx in range(12):
		if idx:
			clock.advance(0.4)
		resp = await interaction_client.post("/posts/p1/like", headers=headers)
		assert resp.status_code == 200
		body = resp.json()

	assert body["is_bot"] is True
	assert body["score"] == 65
	assert body["reasons"] == [
		"Rapid interactions detected",
		"Uniform timing patterns",
		"Lack of natural pauses",
	]
	# requests 11 and 12 both cross the threshold
	assert reputation_store.records["u1"].like_spam_count == 2


@pytest.mark.asyncio
async def test_sink_failure_does_not_block(interaction_client: AsyncClient, detection, monkeypatch):
	async def _failing_offense(actor_id, action_kind):
		raise ReputationWriteError(actor_id, action_kind)

	monkeypatch.setattr(detection.sink, "record_offense", _failing_offense)
	resp = await interaction_client.post("/posts/p1/like", headers={"X-Actor": "u1", "User-Agent": "Googlebot"})
	assert resp.status_code == 200
	# 40 points: suspicious agent alone stays below the bot threshold
	assert resp.json()["is_bot"] is False

	for _ in range(10):
		resp = await interaction_client.post("/posts/p1/like", headers={"X-Actor": "u1", "User-Agent": "Googlebot"})
	assert resp.status_code == 200
	assert resp.json()["is_bot"] is True


@pytest.mark.asyncio
async def test_tracker_failure_fails_open(interaction_client: AsyncClient, detection, monkeypatch):
	async def _broken(*args, **kwargs):
		raise RuntimeError("tracker down")

	monkeypatch.setattr(detection.tracker, "record_interaction", _broken)
	resp = await interaction_client.post("/posts/p1/like", headers={"X-Actor": "u1"})
	assert resp.status_code == 200
	assert resp.json()["checked"] is False
	assert resp.json()["is_bot"] is False


@pytest.mark.asyncio
async def test_tracker_failure_fails_closed_when_configured(interaction_client: AsyncClient, detection, monkeypatch):
	async def _broken(*args, **kwargs):
		raise RuntimeError("tracker down")

	monkeypatch.setattr(detection.tracker, "record_interaction", _broken)
	settings.bot_check_fail_closed = True
	resp = await interaction_client.post("/posts/p1/like", headers={"X-Actor": "u1"})
	assert resp.status_code == 503
	assert resp.json()["detail"] == {"code": "bot_check_unavailable"}


@pytest.mark.asyncio
async def test_stalled_sink_is_abandoned_after_timeout(interaction_client: AsyncClient, detection, monkeypatch, reputation_store):
	async def _stalled_offense(actor_id, action_kind):
		await asyncio.sleep(5)

	monkeypatch.setattr(detection.sink, "record_offense", _stalled_offense)
	monkeypatch.setattr(settings, "reputation_write_timeout_seconds", 0.05)
	headers = {"X-Actor": "u1", "User-Agent": "Googlebot"}
	for _ in range(10):
		await interaction_client.post("/posts/p1/like", headers=headers)

	started = time.perf_counter()
	resp = await interaction_client.post("/posts/p1/like", headers=headers)
	elapsed = time.perf_counter() - started

	assert resp.status_code == 200
	assert resp.json()["is_bot"] is True
	assert elapsed < 2
	assert "u1" not in reputation_store.records
