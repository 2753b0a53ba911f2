from __future__ import annotations

import asyncio
import json
import threading

import pytest

from conftest import FakeInferenceClient, make_image_ref
from dermascan.analysis.models import Phase
from dermascan.core.config import settings
from dermascan.services.events import EventBus
from dermascan.services.inference import InferenceError
from dermascan.services.runner import AnalysisRunner
from dermascan.services.store import SessionNotFoundError, SessionStore


async def _session_with_image(store: SessionStore, filename: str = "face.jpg") -> str:
    session = await store.create()
    async with store.locked(session.id) as locked:
        locked.select_image(make_image_ref(filename))
    return session.id


async def test_runner_success_moves_to_success() -> None:
    store, bus = SessionStore(), EventBus()
    client = FakeInferenceClient()
    runner = AnalysisRunner(store, bus, client_factory=lambda: client)
    session_id = await _session_with_image(store)

    generation = await runner.start(session_id)
    await runner.wait_idle()

    session = await store.get(session_id)
    assert generation == 1
    assert session.phase is Phase.SUCCESS
    assert session.result is not None
    assert session.result.overall_score == 65
    assert client.calls[0].filename == "face.jpg"


@pytest.mark.parametrize("error", [InferenceError("Gemini call failed"), ValueError("unexpected")])
async def test_runner_failure_uses_generic_message(error: Exception) -> None:
    store, bus = SessionStore(), EventBus()
    runner = AnalysisRunner(store, bus, client_factory=lambda: FakeInferenceClient(error=error))
    session_id = await _session_with_image(store)

    await runner.start(session_id)
    await runner.wait_idle()

    session = await store.get(session_id)
    assert session.phase is Phase.ERROR
    assert session.error == settings.ANALYSIS_ERROR_MESSAGE


async def test_runner_start_without_image_does_nothing() -> None:
    store, bus = SessionStore(), EventBus()
    client = FakeInferenceClient()
    runner = AnalysisRunner(store, bus, client_factory=lambda: client)
    session = await store.create()

    assert await runner.start(session.id) is None
    await runner.wait_idle()

    assert session.phase is Phase.IDLE
    assert client.calls == []


async def test_runner_unknown_session() -> None:
    runner = AnalysisRunner(SessionStore(), EventBus(), client_factory=FakeInferenceClient)
    with pytest.raises(SessionNotFoundError):
        await runner.start("missing")


async def test_runner_discards_late_response_after_image_swap() -> None:
    store, bus = SessionStore(), EventBus()
    client = FakeInferenceClient()
    client.gate = threading.Event()
    runner = AnalysisRunner(store, bus, client_factory=lambda: client)
    session_id = await _session_with_image(store, "first.jpg")

    await runner.start(session_id)
    async with store.locked(session_id) as session:
        session.select_image(make_image_ref("second.jpg"))
    client.gate.set()
    await runner.wait_idle()

    session = await store.get(session_id)
    assert session.phase is Phase.IDLE
    assert session.result is None
    assert session.image.filename == "second.jpg"


async def test_runner_publishes_session_views() -> None:
    store, bus = SessionStore(), EventBus()
    runner = AnalysisRunner(store, bus, client_factory=FakeInferenceClient)
    session_id = await _session_with_image(store)
    queue = await bus.subscribe(session_id)

    await runner.start(session_id)
    await runner.wait_idle()

    first = json.loads(await asyncio.wait_for(queue.get(), timeout=1))
    second = json.loads(await asyncio.wait_for(queue.get(), timeout=1))
    assert first["phase"] == "analyzing"
    assert second["phase"] == "success"
    assert second["score_band"]["label"] == "Moderate"
