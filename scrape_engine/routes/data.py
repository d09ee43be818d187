"""Aggregation, statistics and schema API endpoints."""
from typing import List

from fastapi import APIRouter, Depends

from ..models import (
    AggregateRequest,
    AggregateResponse,
    ProcessedRecord,
    RecordsRequest,
    SchemaResponse,
    StatisticsResponse,
)
from ..services import ScrapeEngine
from ..utils.logger import logger
from .dependencies import get_engine, to_http_exception

router = APIRouter(prefix="/api/data", tags=["data"])


def _records(request: RecordsRequest, engine: ScrapeEngine) -> List[ProcessedRecord]:
    if request.session_id:
        return list(engine.require_session(request.session_id).data.cleaned_data)
    return request.records


@router.post("/aggregate", response_model=AggregateResponse)
async def aggregate(
    request: AggregateRequest, engine: ScrapeEngine = Depends(get_engine)
) -> AggregateResponse:
    """Group and reduce processed records.

    With ``session_id`` the session's cleaned data is used and the result is
    kept on the session.
    """
    try:
        if request.session_id:
            groups = engine.aggregate_session(request.session_id, request.rules)
        else:
            groups = engine.aggregate_data(request.records, request.rules)
        logger.info(f"Aggregated into {len(groups)} groups")
        return AggregateResponse(groups=groups, total=len(groups))
    except Exception as e:
        raise to_http_exception(e, "aggregating records")


@router.post("/statistics", response_model=StatisticsResponse)
async def statistics(
    request: RecordsRequest, engine: ScrapeEngine = Depends(get_engine)
) -> StatisticsResponse:
    try:
        if request.session_id:
            _, stats = engine.describe_session(request.session_id)
        else:
            stats = engine.generate_data_statistics(_records(request, engine))
        return StatisticsResponse(statistics=stats)
    except Exception as e:
        raise to_http_exception(e, "generating statistics")


@router.post("/schema", response_model=SchemaResponse)
async def schema(
    request: RecordsRequest, engine: ScrapeEngine = Depends(get_engine)
) -> SchemaResponse:
    try:
        if request.session_id:
            data_schema, _ = engine.describe_session(request.session_id)
        else:
            data_schema = engine.infer_data_schema(_records(request, engine))
        return SchemaResponse(data_schema=data_schema)
    except Exception as e:
        raise to_http_exception(e, "inferring schema")
