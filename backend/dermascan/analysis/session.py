from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from dermascan.analysis.models import AnalysisResult, ImageRef, Phase

logger = logging.getLogger(__name__)

_STARTABLE_PHASES = frozenset({Phase.IDLE, Phase.ERROR})


class UnknownFindingError(LookupError):
    """Raised when a selection targets an id that is not part of the current result."""


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class AnalysisSession:
    """
    Lifecycle of one upload / analyze / display flow.

    The session is created once per page load and reused in place. Every
    started analysis gets a new generation number; completions carrying an
    older generation are discarded, so a late response for a previous image
    never overwrites the current state.
    """

    id: str
    phase: Phase = Phase.IDLE
    image: ImageRef | None = None
    result: AnalysisResult | None = None
    error: str | None = None
    active_finding_id: str | None = None
    generation: int = 0
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def has_image(self) -> bool:
        return self.image is not None

    @property
    def can_start(self) -> bool:
        return self.has_image and self.phase in _STARTABLE_PHASES

    def _touch(self) -> None:
        self.updated_at = _now()

    def select_image(self, image: ImageRef) -> None:
        if self.phase is Phase.ANALYZING:
            # Invalidate the in-flight request.
            self.generation += 1
            logger.debug("Session %s: image swapped mid-analysis, generation now %s", self.id, self.generation)
        self.image = image
        self.phase = Phase.IDLE
        self.result = None
        self.error = None
        self.active_finding_id = None
        self._touch()

    def start(self) -> int | None:
        """Move to ANALYZING and return the new generation, or None when guarded."""
        if not self.can_start:
            logger.debug("Session %s: start ignored (phase=%s, has_image=%s)", self.id, self.phase.value, self.has_image)
            return None
        self.generation += 1
        self.phase = Phase.ANALYZING
        self.error = None
        self.active_finding_id = None
        self._touch()
        return self.generation

    def is_current(self, generation: int) -> bool:
        return self.phase is Phase.ANALYZING and generation == self.generation

    def complete(self, generation: int, result: AnalysisResult) -> bool:
        if not self.is_current(generation):
            logger.debug("Session %s: discarding stale result (generation %s != %s)", self.id, generation, self.generation)
            return False
        self.result = result
        self.phase = Phase.SUCCESS
        self._touch()
        return True

    def fail(self, generation: int, message: str) -> bool:
        if not self.is_current(generation):
            logger.debug("Session %s: discarding stale failure (generation %s != %s)", self.id, generation, self.generation)
            return False
        self.error = message
        self.phase = Phase.ERROR
        self._touch()
        return True

    # Selection shared by the overlay and the findings list.

    def _require_finding(self, finding_id: str) -> None:
        if self.result is None or finding_id not in self.result.finding_ids():
            raise UnknownFindingError(finding_id)

    def hover_finding(self, finding_id: str) -> None:
        self._require_finding(finding_id)
        self.active_finding_id = finding_id
        self._touch()

    def leave_finding(self) -> None:
        self.active_finding_id = None
        self._touch()

    def click_finding(self, finding_id: str) -> None:
        # Clicking a box always selects; only a list hover-leave clears.
        self._require_finding(finding_id)
        self.active_finding_id = finding_id
        self._touch()

    def is_active(self, finding_id: str) -> bool:
        return self.active_finding_id is not None and self.active_finding_id == finding_id
