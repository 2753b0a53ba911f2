from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from dermascan.analysis.geometry import overlay_rects
from dermascan.analysis.models import AnalysisResult, Phase

GREEN = "#22c55e"
YELLOW = "#eab308"
ORANGE = "#f97316"
RED = "#ef4444"


@dataclass(frozen=True, slots=True)
class Band:
    label: str
    color: str


@dataclass(frozen=True, slots=True)
class BandingConfig:
    """
    Ascending threshold tables: a score strictly above a threshold takes its band.

    The overall score and the per-finding bar use different tables on purpose.
    """

    floor: Band
    thresholds: Sequence[tuple[float, Band]]

    def resolve(self, score: float) -> Band:
        band = self.floor
        for threshold, candidate in self.thresholds:
            if score > threshold:
                band = candidate
        return band

    @classmethod
    def overall(cls) -> "BandingConfig":
        return cls(
            floor=Band("Clear", GREEN),
            thresholds=(
                (20, Band("Mild", YELLOW)),
                (50, Band("Moderate", ORANGE)),
                (75, Band("Severe", RED)),
            ),
        )

    @classmethod
    def finding(cls) -> "BandingConfig":
        return cls(
            floor=Band("low", GREEN),
            thresholds=(
                (40, Band("medium", ORANGE)),
                (70, Band("high", RED)),
            ),
        )


OVERALL_BANDING = BandingConfig.overall()
FINDING_BANDING = BandingConfig.finding()

STATUS_LABELS: dict[Phase, str] = {
    Phase.IDLE: "Ready for analysis",
    Phase.ANALYZING: "Scanning facial features...",
    Phase.SUCCESS: "Analysis complete",
    Phase.ERROR: "Analysis failed",
}


def score_band(overall_score: float) -> Band:
    return OVERALL_BANDING.resolve(overall_score)


def finding_band(severity: float) -> Band:
    return FINDING_BANDING.resolve(severity)


def status_label(phase: Phase) -> str:
    return STATUS_LABELS[phase]


def nothing_active(finding_id: str) -> bool:
    return False


def finding_rows(
    result: AnalysisResult,
    is_active: Callable[[str], bool] = nothing_active,
) -> list[dict[str, Any]]:
    """Rows for the findings list, in the order the model returned them.

    `is_active` is the selection predicate, normally `AnalysisSession.is_active`.
    """
    rows: list[dict[str, Any]] = []
    for index, finding in enumerate(result.findings, start=1):
        band = finding_band(finding.severity_score)
        rows.append(
            {
                "id": finding.id,
                "index": index,
                "category": finding.category,
                "location": finding.location,
                "suggestion": finding.suggestion,
                "severity": finding.severity_score,
                "severity_band": band.label,
                "severity_color": band.color,
                "bar_width_pct": max(0.0, min(100.0, float(finding.severity_score))),
                "has_box": finding.bounding_box is not None,
                "active": is_active(finding.id),
            }
        )
    return rows


def overlay_entries(
    result: AnalysisResult,
    is_active: Callable[[str], bool] = nothing_active,
) -> list[dict[str, Any]]:
    categories = {finding.id: finding.category for finding in result.findings}
    entries: list[dict[str, Any]] = []
    for finding_id, rect in overlay_rects(result.findings):
        active = is_active(finding_id)
        entries.append(
            {
                "id": finding_id,
                "top_pct": rect.top_pct,
                "left_pct": rect.left_pct,
                "height_pct": rect.height_pct,
                "width_pct": rect.width_pct,
                "active": active,
                "label": categories[finding_id] if active else None,
            }
        )
    return entries
