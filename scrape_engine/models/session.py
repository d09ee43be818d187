"""Session-related data models."""
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field

from .data import (
    RawRecord,
    ProcessedRecord,
    AggregatedData,
    DataSchema,
    DataStatistics,
)


class SessionStatus(str, Enum):
    """Session status enumeration."""

    CREATED = "created"
    CONFIGURING = "configuring"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.EXPIRED)


class RateLimit(BaseModel):
    delay_ms: int = 1000
    burst_limit: int = 5


class RetryOptions(BaseModel):
    max_attempts: int = 3
    backoff_ms: int = 1000


class TimeoutSettings(BaseModel):
    page_load_ms: int = 30000
    element_wait_ms: int = 10000


class ProxySettings(BaseModel):
    host: str
    port: int
    username: Optional[str] = None
    password: Optional[str] = None
    protocol: Literal["http", "https", "socks4", "socks5"] = "http"


class SecuritySettings(BaseModel):
    allowed_domains: Optional[List[str]] = None
    blocked_domains: Optional[List[str]] = None
    max_file_size: Optional[int] = None
    validate_certificates: bool = True
    block_mixed_content: bool = True


class SessionConfig(BaseModel):
    """Scraping configuration owned by a session.

    The engine only stores these values; the page driver consumes them.
    """

    rate_limit: RateLimit = Field(default_factory=RateLimit)
    retry_options: RetryOptions = Field(default_factory=RetryOptions)
    timeout: TimeoutSettings = Field(default_factory=TimeoutSettings)
    user_agent: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)
    proxy: Optional[ProxySettings] = None
    javascript_enabled: bool = True
    allow_redirects: bool = True
    max_redirects: int = 5
    cookies_enabled: bool = True
    security_policy: Optional[SecuritySettings] = None


class MemorySnapshot(BaseModel):
    """Process memory usage in bytes."""

    rss: int = 0
    vms: int = 0


class MemoryUsage(BaseModel):
    start: MemorySnapshot = Field(default_factory=MemorySnapshot)
    peak: MemorySnapshot = Field(default_factory=MemorySnapshot)
    current: MemorySnapshot = Field(default_factory=MemorySnapshot)


class PerformanceMetrics(BaseModel):
    start_time: datetime
    throughput_per_minute: float = 0.0
    success_rate: float = 0.0
    average_page_load_time: float = 0.0
    memory_usage: MemoryUsage = Field(default_factory=MemoryUsage)


class QualityMetrics(BaseModel):
    """Rolling aggregate of per-record quality for a session."""

    completeness: float = 0.0
    accuracy: float = 0.0
    consistency: float = 0.0
    timeliness: float = 0.0
    duplicates: int = 0
    errors: int = 0
    score: float = 0.0


class ProgressTracker(BaseModel):
    """Progress counters for a session."""

    total_pages: int = 0
    pages_processed: int = 0
    pages_successful: int = 0
    pages_failed: int = 0
    data_points_extracted: int = 0
    errors_encountered: int = 0
    current_url: Optional[str] = None
    last_update: datetime
    estimated_time_remaining: Optional[float] = None
    avg_processing_time_ms: float = 0.0
    performance: PerformanceMetrics
    quality: QualityMetrics = Field(default_factory=QualityMetrics)


class SessionMetadata(BaseModel):
    """Metadata for a scraping session."""

    plan_id: Optional[str] = None
    user_id: Optional[str] = None
    user_agent: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[float] = None  # seconds
    tags: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"


class DataStore(BaseModel):
    """Data collected and derived for a session."""

    raw_data: List[RawRecord] = Field(default_factory=list)
    cleaned_data: List[ProcessedRecord] = Field(default_factory=list)
    aggregated_data: List[AggregatedData] = Field(default_factory=list)
    data_schema: Optional[DataSchema] = Field(default=None, alias="schema")
    statistics: DataStatistics = Field(default_factory=DataStatistics)

    model_config = ConfigDict(populate_by_name=True)


class Session(BaseModel):
    """Complete session data."""

    id: str
    configuration: SessionConfig
    progress: ProgressTracker
    data: DataStore = Field(default_factory=DataStore)
    metadata: SessionMetadata
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    status: SessionStatus = SessionStatus.CREATED

    def summary(self) -> Dict[str, Any]:
        """Compact view without the record buffers."""
        return {
            "id": self.id,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "expires_at": self.expires_at,
            "raw_records": len(self.data.raw_data),
            "cleaned_records": len(self.data.cleaned_data),
            "tags": self.metadata.tags,
            "description": self.metadata.description,
        }
