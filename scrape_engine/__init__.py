"""Scrape Engine: session lifecycle tracking and a data processing pipeline for scraped records."""
from .config import settings
from .exceptions import (
    CapacityError,
    ExportError,
    InvalidTransitionError,
    JobNotFoundError,
    NotFoundError,
    PipelineError,
    RuleError,
    ScrapeEngineError,
    SessionNotFoundError,
)
from .models import (
    AggregationRule,
    CleaningRule,
    EventType,
    ExportFormat,
    ProcessedRecord,
    RawRecord,
    Session,
    SessionConfig,
    SessionStatus,
    ValidationRule,
)
from .services import DataPipeline, FunctionRegistry, ScrapeEngine, SessionManager

__version__ = settings.engine_version

__all__ = [
    "settings",
    "CapacityError",
    "ExportError",
    "InvalidTransitionError",
    "JobNotFoundError",
    "NotFoundError",
    "PipelineError",
    "RuleError",
    "ScrapeEngineError",
    "SessionNotFoundError",
    "AggregationRule",
    "CleaningRule",
    "EventType",
    "ExportFormat",
    "ProcessedRecord",
    "RawRecord",
    "Session",
    "SessionConfig",
    "SessionStatus",
    "ValidationRule",
    "DataPipeline",
    "FunctionRegistry",
    "ScrapeEngine",
    "SessionManager",
]
