"""Request models for API endpoints."""
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field

from .data import AggregationRule, CleaningRule, ProcessedRecord, RawRecord, ValidationRule
from .jobs import ExportFormat, ExportMetadata
from .session import SessionConfig, SessionStatus


class CreateSessionRequest(BaseModel):
    """Request model for creating a session."""

    config: Optional[SessionConfig] = Field(None, description="Scraping configuration")
    description: Optional[str] = Field(None, description="Free-text description")
    tags: List[str] = Field(default_factory=list)
    user_id: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "description": "Product catalogue crawl",
                "tags": ["catalogue", "weekly"],
                "config": {"rate_limit": {"delay_ms": 500, "burst_limit": 3}},
            }
        }
    )


class StatusUpdateRequest(BaseModel):
    status: SessionStatus


class AddRecordsRequest(BaseModel):
    """Raw records captured by the page driver."""

    records: List[RawRecord] = Field(..., min_length=1)


class ProcessRequest(BaseModel):
    """Request model for processing a session's records.

    Without ``records`` the session's raw buffer is processed.
    """

    records: Optional[List[RawRecord]] = None
    cleaning_rules: List[CleaningRule] = Field(default_factory=list)
    validation_rules: List[ValidationRule] = Field(default_factory=list)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "cleaning_rules": [
                    {"field": "name", "operation": "trim"},
                    {
                        "field": "price",
                        "operation": "transform",
                        "parameters": {"transformer": "parseNumber"},
                    },
                ],
                "validation_rules": [{"type": "required", "field": "name"}],
            }
        }
    )


class RecordsRequest(BaseModel):
    """Processed records given inline, or taken from a session."""

    session_id: Optional[str] = None
    records: List[ProcessedRecord] = Field(default_factory=list)


class AggregateRequest(RecordsRequest):
    rules: List[AggregationRule] = Field(..., min_length=1)


class ExportRequest(BaseModel):
    """Request model for exporting session data.

    ``source`` picks the session buffer when ``data`` is not given.
    """

    format: ExportFormat
    filename: str = Field(..., min_length=1)
    path: Optional[str] = None
    source: str = Field("cleaned", pattern="^(cleaned|aggregated)$")
    data: Optional[List[Dict[str, Any]]] = None
    metadata: ExportMetadata = Field(default_factory=ExportMetadata)
