from __future__ import annotations

import threading
from dataclasses import dataclass
from io import BytesIO

import pytest
from PIL import Image

from dermascan.analysis.models import AnalysisResult, ImageRef
from dermascan.api.v1.endpoints.sessions import get_bus, get_runner, get_store
from dermascan.main import app
from dermascan.services.events import EventBus
from dermascan.services.inference import parse_analysis_payload
from dermascan.services.runner import AnalysisRunner
from dermascan.services.store import SessionStore

CHIN_PAYLOAD = {
    "overallScore": 65,
    "summary": "Moderate inflammatory acne on the lower face.",
    "lesions": [
        {
            "location": "chin",
            "type": "Pustule",
            "severity": 80,
            "suggestion": "Apply benzoyl peroxide once a day.",
            "box_2d": [100, 200, 300, 400],
        }
    ],
}


def make_image_bytes(width: int = 64, height: int = 48, color: tuple[int, int, int] = (230, 190, 170)) -> bytes:
    image = Image.new("RGB", (width, height), color)
    buffer = BytesIO()
    image.save(buffer, format="JPEG")
    return buffer.getvalue()


def make_image_ref(filename: str = "face.jpg") -> ImageRef:
    return ImageRef(filename=filename, content_type="image/jpeg", data=make_image_bytes())


class FakeInferenceClient:
    """Stands in for Gemini. Optionally blocks until `gate` is set."""

    def __init__(self, payload: dict | None = None, error: Exception | None = None) -> None:
        self.payload = payload if payload is not None else CHIN_PAYLOAD
        self.error = error
        self.gate: threading.Event | None = None
        self.calls: list[ImageRef] = []

    def analyze(self, image: ImageRef) -> AnalysisResult:
        self.calls.append(image)
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return parse_analysis_payload(self.payload)


@dataclass
class Services:
    store: SessionStore
    bus: EventBus
    runner: AnalysisRunner
    client: FakeInferenceClient


@pytest.fixture
def fake_client() -> FakeInferenceClient:
    return FakeInferenceClient()


@pytest.fixture
def services(fake_client: FakeInferenceClient):
    store = SessionStore()
    bus = EventBus()
    runner = AnalysisRunner(store, bus, client_factory=lambda: fake_client)
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_bus] = lambda: bus
    app.dependency_overrides[get_runner] = lambda: runner
    yield Services(store=store, bus=bus, runner=runner, client=fake_client)
    app.dependency_overrides.pop(get_store, None)
    app.dependency_overrides.pop(get_bus, None)
    app.dependency_overrides.pop(get_runner, None)
