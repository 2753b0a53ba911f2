from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from dermascan.analysis.presentation import finding_rows, overlay_entries, score_band, status_label
from dermascan.analysis.session import AnalysisSession
from dermascan.core.config import settings


class ScoreBandSchema(BaseModel):
    label: str
    color: str


class FindingRowSchema(BaseModel):
    id: str
    index: int
    category: str
    location: str
    suggestion: str
    severity: float
    severity_band: str
    severity_color: str
    bar_width_pct: float
    has_box: bool
    active: bool


class OverlayRectSchema(BaseModel):
    id: str
    top_pct: float
    left_pct: float
    height_pct: float
    width_pct: float
    active: bool
    label: str | None = None


class SessionView(BaseModel):
    session_id: str
    phase: str
    status_label: str
    can_start: bool
    has_image: bool
    image_url: str | None = None
    annotated_url: str | None = None
    image_filename: str | None = None
    error: str | None = None
    active_finding_id: str | None = None
    generation: int
    updated_at: datetime
    overall_score: float | None = None
    score_band: ScoreBandSchema | None = None
    summary: str | None = None
    finding_count: int | None = None
    findings: list[FindingRowSchema] | None = None
    overlay: list[OverlayRectSchema] | None = None


class SelectionRequest(BaseModel):
    action: Literal["hover", "leave", "click"] = Field(
        ...,
        description="hover/leave come from the findings list, click from the overlay.",
    )
    finding_id: str | None = None


def session_view(session: AnalysisSession) -> SessionView:
    base_url = f"{settings.API_V1_PREFIX}/sessions/{session.id}"
    view = SessionView(
        session_id=session.id,
        phase=session.phase.value,
        status_label=status_label(session.phase),
        can_start=session.can_start,
        has_image=session.has_image,
        image_url=f"{base_url}/image" if session.image else None,
        annotated_url=f"{base_url}/annotated" if session.image else None,
        image_filename=session.image.filename if session.image else None,
        error=session.error,
        active_finding_id=session.active_finding_id,
        generation=session.generation,
        updated_at=session.updated_at,
    )
    result = session.result
    if result is not None:
        band = score_band(result.overall_score)
        view.overall_score = result.overall_score
        view.score_band = ScoreBandSchema(label=band.label, color=band.color)
        view.summary = result.summary
        view.finding_count = len(result.findings)
        view.findings = [FindingRowSchema(**row) for row in finding_rows(result, session.is_active)]
        view.overlay = [OverlayRectSchema(**entry) for entry in overlay_entries(result, session.is_active)]
    return view
