"""Processing and export job models."""
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Union

from pydantic import BaseModel, Field

from .data import new_id


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_finished(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)


class JobKind(str, Enum):
    PROCESSING = "processing"
    EXPORT = "export"


class RecordError(BaseModel):
    """An error contained to one record of a processing batch."""

    record_id: str
    error: str
    timestamp: datetime = Field(default_factory=datetime.now)


class ProcessingJob(BaseModel):
    id: str = Field(default_factory=new_id)
    session_id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    total_records: int = 0
    processed_records: int = 0
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    errors: List[RecordError] = Field(default_factory=list)

    @property
    def finished_at(self) -> Optional[datetime]:
        return self.end_time


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"
    XML = "xml"
    YAML = "yaml"


class ExportMetadata(BaseModel):
    include_headers: bool = True
    encoding: str = "utf-8"
    delimiter: str = ","
    pretty: bool = True
    compression: Optional[str] = None
    template: Optional[str] = None
    filters: Dict[str, Any] = Field(default_factory=dict)
    exclude_flagged: bool = False


class ExportJob(BaseModel):
    id: str = Field(default_factory=new_id)
    session_id: str
    # Unknown format names are kept so the job can fail with a readable error
    format: Union[ExportFormat, str] = Field(..., union_mode="left_to_right")
    filename: str
    file_path: Optional[str] = None
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    created: datetime = Field(default_factory=datetime.now)
    started: Optional[datetime] = None
    completed: Optional[datetime] = None
    error: Optional[str] = None
    file_size: Optional[int] = None
    record_count: int = 0
    metadata: ExportMetadata = Field(default_factory=ExportMetadata)

    @property
    def finished_at(self) -> Optional[datetime]:
        return self.completed
