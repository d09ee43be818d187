"""Data models for the application."""
from .data import (
    AggregatedData,
    AggregationOperation,
    AggregationRule,
    CleaningCondition,
    CleaningOperation,
    CleaningRule,
    ConditionOperator,
    DataQuality,
    DataSchema,
    DataStatistics,
    DataTransformation,
    ExtractionMetadata,
    FieldInfo,
    FieldStatistics,
    FieldType,
    ProcessedRecord,
    QualityIssue,
    QualityIssueType,
    RawRecord,
    SchemaField,
    Severity,
    ValidationRule,
    ValidationRuleType,
    new_id,
)
from .requests import (
    AddRecordsRequest,
    AggregateRequest,
    CreateSessionRequest,
    ExportRequest,
    ProcessRequest,
    RecordsRequest,
    StatusUpdateRequest,
)
from .responses import (
    AggregateResponse,
    ExportResponse,
    ProcessResponse,
    SchemaResponse,
    SessionListResponse,
    SessionResponse,
    StatisticsResponse,
)
from .events import EventSubscription, EventType, ScrapingEvent
from .jobs import (
    ExportFormat,
    ExportJob,
    ExportMetadata,
    JobKind,
    JobStatus,
    ProcessingJob,
    RecordError,
)
from .session import (
    DataStore,
    MemorySnapshot,
    MemoryUsage,
    PerformanceMetrics,
    ProgressTracker,
    ProxySettings,
    QualityMetrics,
    RateLimit,
    RetryOptions,
    SecuritySettings,
    Session,
    SessionConfig,
    SessionMetadata,
    SessionStatus,
    TimeoutSettings,
)

__all__ = [
    "AddRecordsRequest",
    "AggregateRequest",
    "CreateSessionRequest",
    "ExportRequest",
    "ProcessRequest",
    "RecordsRequest",
    "StatusUpdateRequest",
    "AggregateResponse",
    "ExportResponse",
    "ProcessResponse",
    "SchemaResponse",
    "SessionListResponse",
    "SessionResponse",
    "StatisticsResponse",
    "AggregatedData",
    "AggregationOperation",
    "AggregationRule",
    "CleaningCondition",
    "CleaningOperation",
    "CleaningRule",
    "ConditionOperator",
    "DataQuality",
    "DataSchema",
    "DataStatistics",
    "DataTransformation",
    "ExtractionMetadata",
    "FieldInfo",
    "FieldStatistics",
    "FieldType",
    "ProcessedRecord",
    "QualityIssue",
    "QualityIssueType",
    "RawRecord",
    "SchemaField",
    "Severity",
    "ValidationRule",
    "ValidationRuleType",
    "new_id",
    "EventSubscription",
    "EventType",
    "ScrapingEvent",
    "ExportFormat",
    "ExportJob",
    "ExportMetadata",
    "JobKind",
    "JobStatus",
    "ProcessingJob",
    "RecordError",
    "DataStore",
    "MemorySnapshot",
    "MemoryUsage",
    "PerformanceMetrics",
    "ProgressTracker",
    "ProxySettings",
    "QualityMetrics",
    "RateLimit",
    "RetryOptions",
    "SecuritySettings",
    "Session",
    "SessionConfig",
    "SessionMetadata",
    "SessionStatus",
    "TimeoutSettings",
]
