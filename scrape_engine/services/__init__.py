"""Services for the application."""
from .registry import FunctionRegistry
from .cleaning import CleaningEngine
from .quality import QualityAssessor
from .schema_inference import SchemaInferrer
from .data_aggregator import DataAggregator
from .job_tracker import JobTracker
from .export_writers import ExportWriterRegistry
from .pipeline import DataPipeline
from .session_manager import SessionManager
from .engine import ScrapeEngine

__all__ = [
    "FunctionRegistry",
    "CleaningEngine",
    "QualityAssessor",
    "SchemaInferrer",
    "DataAggregator",
    "JobTracker",
    "ExportWriterRegistry",
    "DataPipeline",
    "SessionManager",
    "ScrapeEngine",
]
