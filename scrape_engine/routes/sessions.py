"""Session management API endpoints."""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Path

from ..models import (
    AddRecordsRequest,
    CreateSessionRequest,
    ProcessRequest,
    ProcessResponse,
    SessionListResponse,
    SessionResponse,
    StatusUpdateRequest,
)
from ..services import ScrapeEngine
from ..utils.logger import logger
from .dependencies import get_engine, to_http_exception

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    request: CreateSessionRequest, engine: ScrapeEngine = Depends(get_engine)
) -> SessionResponse:
    """Create a new scraping session.

    Args:
        request: Optional configuration, description, tags and user id

    Returns:
        The created session
    """
    try:
        session = engine.create_session(
            request.config, request.description, request.tags, request.user_id
        )
        logger.info(f"Session created: {session.id}")
        return SessionResponse.from_session(session)

    except Exception as e:
        raise to_http_exception(e, "creating session")


@router.get("", response_model=SessionListResponse)
async def list_sessions(engine: ScrapeEngine = Depends(get_engine)) -> SessionListResponse:
    """List all scraping sessions.

    Returns:
        List of all sessions sorted by creation time (newest first)
    """
    try:
        logger.info("Listing all sessions")
        sessions = [SessionResponse.from_session(s) for s in engine.sessions.list_sessions()]
        return SessionListResponse(sessions=sessions, total=len(sessions))

    except Exception as e:
        raise to_http_exception(e, "listing sessions")


@router.get("/statistics")
async def session_statistics(engine: ScrapeEngine = Depends(get_engine)) -> dict:
    """Counts of sessions by state."""
    return engine.sessions.get_session_statistics()


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str = Path(..., description="Session identifier"),
    engine: ScrapeEngine = Depends(get_engine),
) -> SessionResponse:
    """Get details of a specific session.

    Args:
        session_id: Session identifier

    Returns:
        Session details
    """
    session = engine.get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return SessionResponse.from_session(session)


@router.delete("/{session_id}")
async def delete_session(
    session_id: str = Path(..., description="Session identifier"),
    engine: ScrapeEngine = Depends(get_engine),
) -> dict:
    """Delete a session and all its data.

    Args:
        session_id: Session identifier

    Returns:
        Success message
    """
    logger.info(f"Deleting session: {session_id}")
    if not engine.sessions.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"message": f"Session {session_id} deleted successfully"}


@router.patch("/{session_id}/config", response_model=SessionResponse)
async def update_config(
    session_id: str = Path(..., description="Session identifier"),
    config: Dict[str, Any] = Body(..., description="Partial session configuration"),
    engine: ScrapeEngine = Depends(get_engine),
) -> SessionResponse:
    try:
        return SessionResponse.from_session(engine.update_session_config(session_id, config))
    except Exception as e:
        raise to_http_exception(e, f"updating config of session {session_id}")


@router.patch("/{session_id}/progress", response_model=SessionResponse)
async def update_progress(
    session_id: str = Path(..., description="Session identifier"),
    updates: Dict[str, Any] = Body(..., description="Progress counters to merge"),
    engine: ScrapeEngine = Depends(get_engine),
) -> SessionResponse:
    try:
        return SessionResponse.from_session(engine.update_progress(session_id, updates))
    except Exception as e:
        raise to_http_exception(e, f"updating progress of session {session_id}")


@router.put("/{session_id}/status", response_model=SessionResponse)
async def set_status(
    request: StatusUpdateRequest,
    session_id: str = Path(..., description="Session identifier"),
    engine: ScrapeEngine = Depends(get_engine),
) -> SessionResponse:
    try:
        return SessionResponse.from_session(engine.set_session_status(session_id, request.status))
    except Exception as e:
        raise to_http_exception(e, f"setting status of session {session_id}")


@router.post("/{session_id}/records", response_model=SessionResponse)
async def add_records(
    request: AddRecordsRequest,
    session_id: str = Path(..., description="Session identifier"),
    engine: ScrapeEngine = Depends(get_engine),
) -> SessionResponse:
    """Append raw records to the session buffer without processing them."""
    try:
        for record in request.records:
            engine.add_extracted_data(session_id, record)
        return SessionResponse.from_session(engine.require_session(session_id))
    except Exception as e:
        raise to_http_exception(e, f"adding records to session {session_id}")


@router.post("/{session_id}/process", response_model=ProcessResponse)
async def process_session(
    request: ProcessRequest,
    session_id: str = Path(..., description="Session identifier"),
    engine: ScrapeEngine = Depends(get_engine),
) -> ProcessResponse:
    """Clean, validate and score records for a session.

    The response always pairs the processed records with the errors of the
    records that failed.
    """
    try:
        job, records = await engine.process_batch(
            session_id,
            request.records,
            request.cleaning_rules,
            request.validation_rules,
        )
        return ProcessResponse(job=job, records=records, errors=job.errors)
    except Exception as e:
        raise to_http_exception(e, f"processing session {session_id}")
