# client/retinascan/api/session.py
from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile

from retinascan.errors import AnalysisInProgress
from retinascan.schemas import DocumentView, HealthView, SessionView
from retinascan.services.client.session import ClientSession

router = APIRouter(prefix="/session", tags=["session"])


def get_session(request: Request) -> ClientSession:
    """Dependency returning the ClientSession owned by the app lifespan."""
    return request.app.state.session


@router.get("", response_model=SessionView)
def read_session(session: ClientSession = Depends(get_session)) -> SessionView:
    return session.view()


@router.get("/health", response_model=HealthView)
def read_health(session: ClientSession = Depends(get_session)) -> HealthView:
    return session.health_view()


@router.post("/health/refresh", response_model=HealthView)
async def refresh_health(session: ClientSession = Depends(get_session)) -> HealthView:
    """Restart the health monitor and wait for its first probe."""
    session.monitor.start()
    await session.wait_for_health()
    return session.health_view()


@router.post("/upload", response_model=SessionView)
async def upload_file(
    file: UploadFile = File(...),
    session: ClientSession = Depends(get_session),
) -> SessionView:
    """
    Select the image to analyze.

    Invalid files are not an HTTP error: the session records the validation
    message and the previous selection is dropped, exactly as a UI would.
    """
    data = await file.read()
    session.select_file(file.filename or "", data)
    return session.view()


@router.delete("/upload", response_model=SessionView)
def clear_upload(session: ClientSession = Depends(get_session)) -> SessionView:
    session.clear()
    return session.view()


@router.post("/analyze", response_model=SessionView)
async def analyze(
    gradcam: bool | None = Query(default=None),
    session: ClientSession = Depends(get_session),
) -> SessionView:
    try:
        await session.analyze(want_gradcam=gradcam)
    except AnalysisInProgress as exc:
        raise HTTPException(status_code=409, detail=exc.message)
    return session.view()


@router.delete("/error", response_model=SessionView)
def dismiss_error(session: ClientSession = Depends(get_session)) -> SessionView:
    session.dismiss_error()
    return session.view()


@router.get("/model-info", response_model=DocumentView)
async def model_info(session: ClientSession = Depends(get_session)) -> DocumentView:
    return await session.open_model_info()


@router.get("/privacy-notice", response_model=DocumentView)
async def privacy_notice(session: ClientSession = Depends(get_session)) -> DocumentView:
    return await session.open_privacy_notice()
