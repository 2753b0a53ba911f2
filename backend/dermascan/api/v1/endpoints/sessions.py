from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, Response, UploadFile, status
from fastapi.responses import StreamingResponse

from dermascan.analysis.models import Phase
from dermascan.analysis.session import AnalysisSession, UnknownFindingError
from dermascan.core.config import settings
from dermascan.schemas.session import SelectionRequest, SessionView, session_view
from dermascan.services.annotate import AnnotationError, render_annotated_image
from dermascan.services.events import EventBus, event_bus
from dermascan.services.runner import AnalysisRunner, analysis_runner
from dermascan.services.storage import allowed_content_type, read_upload_image
from dermascan.services.store import SessionNotFoundError, SessionStore, session_store

router = APIRouter()
logger = logging.getLogger(__name__)


def get_store() -> SessionStore:
    return session_store


def get_bus() -> EventBus:
    return event_bus


def get_runner() -> AnalysisRunner:
    return analysis_runner


async def _load(store: SessionStore, session_id: str) -> AnalysisSession:
    try:
        return await store.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found") from None


@router.post(
    "",
    summary="Open an analysis session (one per page load)",
    response_model=SessionView,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(store: SessionStore = Depends(get_store)) -> SessionView:
    expired = await store.evict_idle(settings.SESSION_IDLE_SECONDS)
    if expired:
        logger.info("Released %s idle session(s)", len(expired))
    session = await store.create()
    logger.info("Session %s created", session.id)
    return session_view(session)


@router.get("/{session_id}", summary="Current session state, result and overlay", response_model=SessionView)
async def read_session(session_id: str, store: SessionStore = Depends(get_store)) -> SessionView:
    return session_view(await _load(store, session_id))


@router.delete(
    "/{session_id}",
    summary="Close a session and release its photo",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def close_session(session_id: str, store: SessionStore = Depends(get_store)) -> Response:
    if not await store.discard(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    logger.info("Session %s closed", session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{session_id}/image", summary="Select or drop a photo", response_model=SessionView)
async def select_image(
    session_id: str,
    file: UploadFile = File(...),
    source: str = Form("picker"),
    store: SessionStore = Depends(get_store),
    runner: AnalysisRunner = Depends(get_runner),
) -> SessionView:
    session = await _load(store, session_id)
    content_type = file.content_type or ""
    if source == "drop" and not allowed_content_type(content_type):
        logger.debug("Session %s: ignoring dropped %s (%s)", session_id, file.filename, content_type)
        await file.close()
        return session_view(session)

    image = await read_upload_image(file)
    async with store.locked(session_id) as locked:
        locked.select_image(image)
        view = session_view(locked)
    logger.info("Session %s: image %s selected (%s bytes)", session_id, image.filename, image.size_bytes)
    await runner.publish(session_id)
    return view


@router.get("/{session_id}/image", summary="Download the selected photo")
async def read_image(session_id: str, store: SessionStore = Depends(get_store)) -> Response:
    session = await _load(store, session_id)
    if session.image is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No image selected")
    return Response(content=session.image.data, media_type=session.image.content_type)


@router.get("/{session_id}/annotated", summary="Photo with the detected lesions drawn")
async def read_annotated_image(session_id: str, store: SessionStore = Depends(get_store)) -> Response:
    session = await _load(store, session_id)
    if session.image is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No image selected")
    try:
        png = render_annotated_image(session.image, session.result, session.is_active)
    except AnnotationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return Response(content=png, media_type="image/png")


@router.post(
    "/{session_id}/analysis",
    summary="Start the analysis of the selected photo",
    response_model=SessionView,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_analysis(
    session_id: str,
    store: SessionStore = Depends(get_store),
    runner: AnalysisRunner = Depends(get_runner),
) -> SessionView:
    await _load(store, session_id)
    generation = await runner.start(session_id)
    session = await store.get(session_id)
    if generation is None:
        logger.debug("Session %s: analysis not started (phase=%s)", session_id, session.phase.value)
    return session_view(session)


@router.put("/{session_id}/selection", summary="Hover, leave or click a finding", response_model=SessionView)
async def update_selection(
    session_id: str,
    payload: SelectionRequest,
    store: SessionStore = Depends(get_store),
    runner: AnalysisRunner = Depends(get_runner),
) -> SessionView:
    await _load(store, session_id)
    async with store.locked(session_id) as session:
        if session.phase is not Phase.SUCCESS and payload.action != "leave":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="No analysis result to select from")
        try:
            if payload.action == "leave":
                session.leave_finding()
            elif payload.finding_id is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="finding_id is required")
            elif payload.action == "hover":
                session.hover_finding(payload.finding_id)
            else:
                session.click_finding(payload.finding_id)
        except UnknownFindingError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Finding not found") from None
        view = session_view(session)
    await runner.publish(session_id)
    return view


async def _event_stream(
    request: Request,
    bus: EventBus,
    session_id: str,
    queue: asyncio.Queue[str],
    initial: str,
    interval: float,
):
    try:
        yield f"data: {initial}\n\n"
        while True:
            if await request.is_disconnected():
                break
            try:
                message = await asyncio.wait_for(queue.get(), timeout=interval)
            except asyncio.TimeoutError:
                yield "event: keepalive\ndata: {}\n\n"
            else:
                yield f"data: {message}\n\n"
    finally:
        await bus.unsubscribe(session_id, queue)


@router.get("/{session_id}/events", summary="Server-sent events with the session state")
async def session_events(
    session_id: str,
    request: Request,
    store: SessionStore = Depends(get_store),
    bus: EventBus = Depends(get_bus),
) -> StreamingResponse:
    session = await _load(store, session_id)
    queue = await bus.subscribe(session_id)
    initial = session_view(session).model_dump_json()
    return StreamingResponse(
        _event_stream(request, bus, session_id, queue, initial, settings.SSE_KEEPALIVE_SECONDS),
        media_type="text/event-stream",
    )
