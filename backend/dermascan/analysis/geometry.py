from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from dermascan.analysis.models import BoundingBox, Finding

LOGICAL_SCALE = 1000


@dataclass(frozen=True, slots=True)
class OverlayRect:
    """Rectangle expressed as percentages of the display surface."""

    top_pct: float
    left_pct: float
    height_pct: float
    width_pct: float

    def to_pixels(self, width: int, height: int) -> tuple[float, float, float, float]:
        """Return (x0, y0, x1, y1) on a surface of the given pixel size."""
        x0 = self.left_pct / 100 * width
        y0 = self.top_pct / 100 * height
        x1 = x0 + self.width_pct / 100 * width
        y1 = y0 + self.height_pct / 100 * height
        return x0, y0, x1, y1

    @property
    def is_degenerate(self) -> bool:
        return self.width_pct <= 0 or self.height_pct <= 0


def map_box(box: BoundingBox, scale: float = LOGICAL_SCALE) -> OverlayRect:
    """
    Convert a normalized (top, left, bottom, right) box into percentages.

    Inverted or out-of-range boxes are mapped as-is: the result may have a
    zero or negative size, it is up to the renderer to skip it.
    """
    return OverlayRect(
        top_pct=box.top * 100 / scale,
        left_pct=box.left * 100 / scale,
        height_pct=(box.bottom - box.top) * 100 / scale,
        width_pct=(box.right - box.left) * 100 / scale,
    )


def overlay_rects(findings: Iterable[Finding]) -> list[tuple[str, OverlayRect]]:
    # Findings without a box stay in the list but never reach the overlay.
    return [
        (finding.id, map_box(finding.bounding_box))
        for finding in findings
        if finding.bounding_box is not None
    ]
