"""Export and job polling API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Path

from ..models import ExportJob, ExportRequest, ExportResponse
from ..services import ScrapeEngine
from ..utils.logger import logger
from .dependencies import get_engine, to_http_exception

router = APIRouter(prefix="/api", tags=["exports"])


@router.post("/sessions/{session_id}/exports", response_model=ExportResponse, status_code=202)
async def create_export(
    request: ExportRequest,
    session_id: str = Path(..., description="Session identifier"),
    engine: ScrapeEngine = Depends(get_engine),
) -> ExportResponse:
    """Start an export in the background.

    Returns:
        The pending export job; poll ``/api/exports/{job_id}`` for the outcome
    """
    try:
        data = request.data
        if data is None and request.source == "aggregated":
            data = list(engine.require_session(session_id).data.aggregated_data)

        job = await engine.export_data(
            session_id,
            data,
            request.format,
            request.filename,
            path=request.path,
            metadata=request.metadata,
        )
        logger.info(f"Export {job.id} submitted for session {session_id}")
        return ExportResponse(job=job, message="Export started. Processing in background.")
    except Exception as e:
        raise to_http_exception(e, f"exporting session {session_id}")


@router.get("/exports/{job_id}", response_model=ExportJob)
async def get_export(
    job_id: str = Path(..., description="Export job identifier"),
    engine: ScrapeEngine = Depends(get_engine),
) -> ExportJob:
    job = engine.get_export_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Export job not found")
    return job


@router.get("/jobs/{job_id}")
async def get_job(
    job_id: str = Path(..., description="Processing or export job identifier"),
    engine: ScrapeEngine = Depends(get_engine),
) -> dict:
    try:
        return engine.get_job(job_id).model_dump(mode="json")
    except Exception as e:
        raise to_http_exception(e, f"getting job {job_id}")
