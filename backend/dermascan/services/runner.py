from __future__ import annotations

import asyncio
import logging
from typing import Callable

from dermascan.analysis.models import AnalysisResult, ImageRef
from dermascan.core.config import settings
from dermascan.schemas.session import session_view
from dermascan.services.events import EventBus, event_bus
from dermascan.services.inference import GeminiInferenceClient, InferenceClient, InferenceError
from dermascan.services.store import SessionNotFoundError, SessionStore, session_store

logger = logging.getLogger(__name__)


class AnalysisRunner:
    """
    Starts analyses and applies their completion.

    The blocking inference call runs in the default executor. The completion
    is applied under the store lock and only if the session generation still
    matches the one captured at start.
    """

    def __init__(
        self,
        store: SessionStore,
        bus: EventBus,
        client_factory: Callable[[], InferenceClient] = GeminiInferenceClient,
    ) -> None:
        self.store = store
        self.bus = bus
        self.client_factory = client_factory
        self._tasks: set[asyncio.Task[None]] = set()

    async def publish(self, session_id: str) -> None:
        session = await self.store.get(session_id)
        await self.bus.publish(session_id, session_view(session).model_dump(mode="json"))

    async def start(self, session_id: str) -> int | None:
        async with self.store.locked(session_id) as session:
            generation = session.start()
            image = session.image
        if generation is None or image is None:
            return None

        logger.info("Session %s: analysis %s started for %s", session_id, generation, image.filename)
        await self.publish(session_id)
        task = asyncio.create_task(self._run(session_id, generation, image))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return generation

    async def _run(self, session_id: str, generation: int, image: ImageRef) -> None:
        client = self.client_factory()
        loop = asyncio.get_running_loop()
        result: AnalysisResult | None = None
        try:
            result = await loop.run_in_executor(None, client.analyze, image)
        except InferenceError as exc:
            logger.warning("Session %s: analysis %s failed: %s", session_id, generation, exc)
        except Exception:  # noqa: BLE001 - every collaborator failure ends in the error state
            logger.exception("Session %s: unexpected failure during analysis %s", session_id, generation)

        try:
            async with self.store.locked(session_id) as session:
                if result is not None:
                    applied = session.complete(generation, result)
                else:
                    applied = session.fail(generation, settings.ANALYSIS_ERROR_MESSAGE)
        except SessionNotFoundError:
            logger.info("Session %s disappeared before analysis %s completed", session_id, generation)
            return
        if not applied:
            logger.info("Session %s: dropped stale completion of analysis %s", session_id, generation)
            return
        await self.publish(session_id)

    async def wait_idle(self) -> None:
        """Wait for every in-flight analysis (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


analysis_runner = AnalysisRunner(session_store, event_bus)
