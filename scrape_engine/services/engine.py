"""In-process entry point wiring the session registry to the data pipeline."""
import statistics
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..exceptions import PipelineError, SessionNotFoundError
from ..models import (
    AggregatedData,
    AggregationRule,
    CleaningRule,
    DataSchema,
    DataStatistics,
    EventType,
    ExportFormat,
    ExportJob,
    ExportMetadata,
    JobStatus,
    ProcessedRecord,
    ProcessingJob,
    RawRecord,
    Session,
    SessionConfig,
    SessionStatus,
    ValidationRule,
)
from ..utils.logger import logger
from .export_writers import format_name
from .job_tracker import Job
from .pipeline import DataPipeline
from .session_manager import EventCallback, SessionManager


class ScrapeEngine:
    """The operations callers use: sessions, processing, analysis and export.

    Construct once per process and call ``shutdown()`` on teardown.
    """

    def __init__(
        self,
        sessions: Optional[SessionManager] = None,
        pipeline: Optional[DataPipeline] = None,
    ):
        self.sessions = sessions if sessions is not None else SessionManager()
        self.pipeline = pipeline if pipeline is not None else DataPipeline()

    @property
    def registry(self):
        return self.pipeline.registry

    # Sessions

    def create_session(
        self,
        config: Optional[Union[SessionConfig, Dict[str, Any]]] = None,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
        user_id: Optional[str] = None,
    ) -> Session:
        return self.sessions.create_session(config, description, tags, user_id)

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.sessions.get_session(session_id)

    def require_session(self, session_id: str) -> Session:
        session = self.sessions.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def update_session_config(
        self, session_id: str, config: Union[SessionConfig, Dict[str, Any]]
    ) -> Session:
        return self.sessions.update_config(session_id, config)

    def update_progress(self, session_id: str, updates: Dict[str, Any]) -> Session:
        return self.sessions.update_progress(session_id, updates)

    def set_session_status(self, session_id: str, status: Union[SessionStatus, str]) -> Session:
        return self.sessions.set_status(session_id, status)

    def add_extracted_data(
        self, session_id: str, record: Union[RawRecord, Dict[str, Any]]
    ) -> RawRecord:
        return self.sessions.add_extracted_data(session_id, record)

    def subscribe(
        self,
        session_id: Optional[str],
        event_types: Optional[Iterable[Union[EventType, str]]],
        callback: EventCallback,
    ) -> str:
        return self.sessions.subscribe(session_id, event_types, callback)

    def unsubscribe(self, subscription_id: str) -> bool:
        return self.sessions.unsubscribe(subscription_id)

    # Processing

    async def process_data(
        self,
        session_id: str,
        raw_records: Optional[List[Union[RawRecord, Dict[str, Any]]]] = None,
        cleaning_rules: Optional[List[CleaningRule]] = None,
        validation_rules: Optional[List[ValidationRule]] = None,
    ) -> List[ProcessedRecord]:
        _, records = await self.process_batch(
            session_id, raw_records, cleaning_rules, validation_rules
        )
        return records

    async def process_batch(
        self,
        session_id: str,
        raw_records: Optional[List[Union[RawRecord, Dict[str, Any]]]] = None,
        cleaning_rules: Optional[List[CleaningRule]] = None,
        validation_rules: Optional[List[ValidationRule]] = None,
    ) -> Tuple[ProcessingJob, List[ProcessedRecord]]:
        """Process records for a session and store the result on it.

        Without ``raw_records`` the session's whole raw buffer is processed
        and replaces its cleaned data; explicit batches are appended.

        Raises:
            SessionNotFoundError: If the session is absent or expired
            PipelineError: If the batch fails as a whole
        """
        session = self.require_session(session_id)
        from_buffer = raw_records is None
        batch = list(session.data.raw_data) if from_buffer else raw_records

        try:
            job, processed = await self.pipeline.process_batch(
                session_id, batch, cleaning_rules, validation_rules
            )
        except PipelineError as e:
            self.sessions.record_error(session_id, str(e))
            raise

        if from_buffer:
            session.data.cleaned_data = list(processed)
        else:
            session.data.cleaned_data.extend(processed)
        session.data.statistics = self.pipeline.generate_data_statistics(session.data.cleaned_data)

        for error in job.errors:
            self.sessions.record_error(session_id, f"Record {error.record_id}: {error.error}")

        self.sessions.update_progress(
            session_id, {"quality": self._quality_metrics(session, len(job.errors))}
        )
        self.sessions.publish(
            EventType.DATA_CLEANED,
            session_id,
            {"job_id": job.id, "processed": len(processed), "errors": len(job.errors)},
        )
        return job, processed

    @staticmethod
    def _quality_metrics(session: Session, errors: int) -> Dict[str, Any]:
        records = session.data.cleaned_data
        previous = session.progress.quality
        if not records:
            return {**previous.model_dump(), "errors": previous.errors + errors}

        def mean(attr: str) -> float:
            return statistics.fmean(getattr(r.quality, attr) for r in records)

        return {
            "completeness": mean("completeness"),
            "accuracy": mean("accuracy"),
            "consistency": mean("consistency"),
            "timeliness": mean("timeliness"),
            "duplicates": session.data.statistics.duplicate_records,
            "errors": previous.errors + errors,
            "score": statistics.fmean(r.quality.overall_score for r in records),
        }

    def aggregate_data(
        self, records: List[ProcessedRecord], rules: List[AggregationRule]
    ) -> List[AggregatedData]:
        return self.pipeline.aggregate_data(records, rules)

    def generate_data_statistics(self, records: List[ProcessedRecord]) -> DataStatistics:
        return self.pipeline.generate_data_statistics(records)

    def infer_data_schema(self, records: List[ProcessedRecord]) -> DataSchema:
        return self.pipeline.infer_data_schema(records)

    def aggregate_session(self, session_id: str, rules: List[AggregationRule]) -> List[AggregatedData]:
        """Aggregate a session's cleaned data and keep the rows on the session."""
        session = self.require_session(session_id)
        session.data.aggregated_data = self.aggregate_data(session.data.cleaned_data, rules)
        return session.data.aggregated_data

    def describe_session(self, session_id: str) -> Tuple[DataSchema, DataStatistics]:
        """Infer schema and statistics for a session's cleaned data and keep both."""
        session = self.require_session(session_id)
        session.data.data_schema = self.infer_data_schema(session.data.cleaned_data)
        session.data.statistics = self.generate_data_statistics(session.data.cleaned_data)
        return session.data.data_schema, session.data.statistics

    # Export

    async def export_data(
        self,
        session_id: str,
        data: Optional[List[Union[ProcessedRecord, AggregatedData, Dict[str, Any]]]],
        export_format: Union[ExportFormat, str],
        filename: str,
        path: Optional[str] = None,
        metadata: Optional[Union[ExportMetadata, Dict[str, Any]]] = None,
    ) -> ExportJob:
        """Submit an export. Defaults to the session's cleaned data.

        Returns the pending job at once; outcome is reported through the job
        and through ``export.completed`` or ``error.occurred`` events.
        """
        session = self.require_session(session_id)
        if data is None:
            data = list(session.data.cleaned_data)

        job = await self.pipeline.export_data(
            session_id,
            data,
            export_format,
            filename,
            path=path,
            metadata=metadata,
            on_finished=self._export_finished,
        )
        self.sessions.publish(
            EventType.EXPORT_STARTED,
            session_id,
            {"job_id": job.id, "format": format_name(job.format), "filename": job.filename},
        )
        return job

    def _export_finished(self, job: ExportJob) -> None:
        if job.status == JobStatus.COMPLETED:
            self.sessions.publish(
                EventType.EXPORT_COMPLETED,
                job.session_id,
                {
                    "job_id": job.id,
                    "file_path": job.file_path,
                    "file_size": job.file_size,
                    "record_count": job.record_count,
                },
            )
        else:
            logger.warning(f"Export {job.id} for session {job.session_id} ended {job.status.value}")
            self.sessions.publish(
                EventType.ERROR_OCCURRED,
                job.session_id,
                {"job_id": job.id, "error": job.error, "fatal": False},
            )

    async def wait_for_export(self, job_id: str) -> ExportJob:
        return await self.pipeline.wait_for_export(job_id)

    # Jobs

    def get_processing_job(self, job_id: str) -> Optional[ProcessingJob]:
        return self.pipeline.get_processing_job(job_id)

    def get_export_job(self, job_id: str) -> Optional[ExportJob]:
        return self.pipeline.get_export_job(job_id)

    def get_job(self, job_id: str) -> Job:
        return self.pipeline.jobs.get(job_id)

    # Lifecycle

    def start(self) -> None:
        self.sessions.start()
        self.pipeline.start()

    async def shutdown(self) -> None:
        await self.pipeline.shutdown()
        await self.sessions.shutdown()
