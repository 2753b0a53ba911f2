from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Phase(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Lesion box on the 0-1000 normalized scale, as returned by the model."""

    top: float
    left: float
    bottom: float
    right: float


@dataclass(frozen=True, slots=True)
class Finding:
    """Single lesion reported by the inference collaborator."""

    id: str
    location: str
    category: str
    severity_score: float
    suggestion: str
    bounding_box: BoundingBox | None = None


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    overall_score: float
    summary: str
    findings: tuple[Finding, ...] = field(default_factory=tuple)

    def finding_ids(self) -> set[str]:
        return {finding.id for finding in self.findings}


@dataclass(frozen=True, slots=True)
class ImageRef:
    """Uploaded photo handle. The bytes are only forwarded, never decoded here."""

    filename: str
    content_type: str
    data: bytes = field(repr=False)

    @property
    def size_bytes(self) -> int:
        return len(self.data)
