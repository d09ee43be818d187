"""Response models for API endpoints."""
from typing import Optional, List
from datetime import datetime

from pydantic import BaseModel, Field

from .data import AggregatedData, DataSchema, DataStatistics, ProcessedRecord
from .jobs import ExportJob, ProcessingJob, RecordError
from .session import (
    ProgressTracker,
    Session,
    SessionConfig,
    SessionMetadata,
    SessionStatus,
)


class SessionResponse(BaseModel):
    """Response model for session retrieval, without the record buffers."""

    session_id: str
    status: SessionStatus
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    configuration: SessionConfig
    progress: ProgressTracker
    metadata: SessionMetadata
    raw_records: int = 0
    cleaned_records: int = 0
    aggregated_records: int = 0
    websocket_url: Optional[str] = None

    @classmethod
    def from_session(cls, session: Session) -> "SessionResponse":
        return cls(
            session_id=session.id,
            status=session.status,
            created_at=session.created_at,
            updated_at=session.updated_at,
            expires_at=session.expires_at,
            configuration=session.configuration,
            progress=session.progress,
            metadata=session.metadata,
            raw_records=len(session.data.raw_data),
            cleaned_records=len(session.data.cleaned_data),
            aggregated_records=len(session.data.aggregated_data),
            websocket_url=f"/ws/{session.id}",
        )


class SessionListResponse(BaseModel):
    """Response model for listing sessions."""

    sessions: List[SessionResponse]
    total: int = Field(..., description="Total number of sessions")


class ProcessResponse(BaseModel):
    """Processed records paired with the errors of the records that failed."""

    job: ProcessingJob
    records: List[ProcessedRecord]
    errors: List[RecordError]


class AggregateResponse(BaseModel):
    groups: List[AggregatedData]
    total: int


class StatisticsResponse(BaseModel):
    statistics: DataStatistics


class SchemaResponse(BaseModel):
    data_schema: DataSchema = Field(..., serialization_alias="schema")


class ExportResponse(BaseModel):
    job: ExportJob
    message: str
