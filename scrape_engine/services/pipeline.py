"""Data pipeline: cleaning, quality scoring, schema inference, aggregation and export."""
import asyncio
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError

from ..config import settings
from ..exceptions import PipelineError
from ..models import (
    AggregatedData,
    AggregationRule,
    CleaningOperation,
    CleaningRule,
    DataSchema,
    DataStatistics,
    ExportFormat,
    ExportJob,
    ExportMetadata,
    JobKind,
    JobStatus,
    ProcessedRecord,
    ProcessingJob,
    RawRecord,
    ValidationRule,
)
from ..utils.logger import logger
from .cleaning import CleaningEngine
from .data_aggregator import DataAggregator
from .export_writers import ExportWriterRegistry, Rows
from .job_tracker import JobTracker
from .quality import QualityAssessor
from .registry import FunctionRegistry
from .schema_inference import SchemaInferrer

ExportListener = Callable[[ExportJob], None]


class DataPipeline:
    """Stateless with respect to session data.

    Batches come in by value and go out as new records. The pipeline owns
    only its function registry and its job tracker.
    """

    def __init__(
        self,
        registry: Optional[FunctionRegistry] = None,
        job_tracker: Optional[JobTracker] = None,
        writers: Optional[ExportWriterRegistry] = None,
        export_path: Optional[Path] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.registry = registry if registry is not None else FunctionRegistry()
        self.cleaning = CleaningEngine(self.registry)
        self.quality = QualityAssessor(self.registry)
        self.schema = SchemaInferrer()
        self.aggregator = DataAggregator()
        self.jobs = job_tracker if job_tracker is not None else JobTracker(clock=clock)
        self.writers = writers if writers is not None else ExportWriterRegistry()
        self.export_path = Path(export_path) if export_path else settings.export_path
        self.clock = clock
        self._export_tasks: Dict[str, asyncio.Task] = {}

    async def process_data(
        self,
        session_id: str,
        raw_records: Iterable[Union[RawRecord, Dict[str, Any]]],
        cleaning_rules: Optional[List[CleaningRule]] = None,
        validation_rules: Optional[List[ValidationRule]] = None,
    ) -> List[ProcessedRecord]:
        """Clean and score a batch, returning processed records in input order.

        Records that fail are left out of the result; their errors are kept
        on the processing job (see ``process_batch``).
        """
        _, records = await self.process_batch(
            session_id, raw_records, cleaning_rules, validation_rules
        )
        return records

    async def process_batch(
        self,
        session_id: str,
        raw_records: Iterable[Union[RawRecord, Dict[str, Any]]],
        cleaning_rules: Optional[List[CleaningRule]] = None,
        validation_rules: Optional[List[ValidationRule]] = None,
    ) -> Tuple[ProcessingJob, List[ProcessedRecord]]:
        """Process a batch under a tracked job.

        Args:
            session_id: Session the batch belongs to
            raw_records: Raw records, or mappings that validate as RawRecord
            cleaning_rules: Rules applied in order to every record
            validation_rules: Rules used for the accuracy dimension

        Items that do not validate as RawRecord are record errors, keyed by
        their ``id`` or, failing that, by ``#<position>``.

        Returns:
            Tuple of (finished job, processed records)

        Raises:
            PipelineError: If the batch fails outside the per-record loop,
                e.g. when ``raw_records`` is not iterable
        """
        cleaning_rules = cleaning_rules or []
        validation_rules = validation_rules or []
        job_id = self.jobs.submit(JobKind.PROCESSING, {"session_id": session_id})
        job = self.jobs.mark_running(job_id)

        try:
            batch = list(raw_records)
            job.total_records = len(batch)
            logger.info(f"Processing {len(batch)} records for session {session_id} (job {job_id})")

            processed: List[ProcessedRecord] = []
            for index, item in enumerate(batch, start=1):
                record_id = self._record_id(item, index)
                try:
                    raw = self._as_raw_record(item)
                    processed.append(
                        await self.process_record(raw, cleaning_rules, validation_rules)
                    )
                except Exception as e:
                    logger.warning(f"Error processing record {record_id}: {e}")
                    self.jobs.record_error(job_id, record_id, str(e))
                self.jobs.record_progress(job_id, len(processed), len(batch), attempted=index)

            self.jobs.complete(job_id)
            if job.errors:
                logger.info(f"Job {job_id} finished with {len(job.errors)} record errors")
            return job, processed

        except Exception as e:
            logger.error(f"Processing job {job_id} failed: {e}")
            self.jobs.fail(job_id, str(e))
            raise PipelineError(f"Processing job {job_id} failed: {e}") from e

    async def process_record(
        self,
        raw: RawRecord,
        cleaning_rules: List[CleaningRule],
        validation_rules: List[ValidationRule],
    ) -> ProcessedRecord:
        cleaned, transformations = await self.cleaning.apply(raw.raw, cleaning_rules)
        quality = self.quality.assess(cleaned, validation_rules)
        flagged = any(
            t.operation == CleaningOperation.FILTER and t.success for t in transformations
        )
        return ProcessedRecord(
            original_id=raw.id,
            processed=cleaned,
            transformations=transformations,
            quality=quality,
            flagged_for_exclusion=flagged,
            timestamp=self.clock(),
        )

    @staticmethod
    def _record_id(item: Any, index: int) -> str:
        if isinstance(item, RawRecord):
            return item.id
        if isinstance(item, dict) and isinstance(item.get("id"), str):
            return item["id"]
        return f"#{index}"

    def _as_raw_record(self, record: Union[RawRecord, Dict[str, Any]]) -> RawRecord:
        if isinstance(record, RawRecord):
            return record
        try:
            return RawRecord.model_validate(record)
        except ValidationError as e:
            raise ValueError(f"Invalid raw record: {e.errors()[0]['msg']}") from e

    def aggregate_data(
        self, records: List[ProcessedRecord], rules: List[AggregationRule]
    ) -> List[AggregatedData]:
        return self.aggregator.aggregate(records, rules)

    def generate_data_statistics(self, records: List[ProcessedRecord]) -> DataStatistics:
        return self.schema.generate_statistics(records)

    def infer_data_schema(self, records: List[ProcessedRecord]) -> DataSchema:
        return self.schema.infer_schema(records)

    async def export_data(
        self,
        session_id: str,
        data: List[Union[ProcessedRecord, AggregatedData, Dict[str, Any]]],
        export_format: Union[ExportFormat, str],
        filename: str,
        path: Optional[Union[str, Path]] = None,
        metadata: Optional[Union[ExportMetadata, Dict[str, Any]]] = None,
        on_finished: Optional[ExportListener] = None,
    ) -> ExportJob:
        """Register an export job and write it in the background.

        The job is returned immediately in ``pending`` state. Everything that
        can go wrong after submission (unknown format, bad metadata, items
        that are not rows, write errors) is recorded on the job and never
        raised to the caller.

        Args:
            session_id: Session the data belongs to
            data: Processed records, aggregated rows or plain mappings
            export_format: Output format; must have a registered writer
            filename: File name inside the export directory
            path: Directory to write into. Defaults to ``<export_path>/<session_id>``
            metadata: Writer options
            on_finished: Called with the job once it completes or fails

        Returns:
            The submitted export job
        """
        directory = Path(path) if path else self.export_path / session_id
        if not isinstance(export_format, ExportFormat):
            export_format = str(export_format)

        job_id = self.jobs.submit(
            JobKind.EXPORT,
            {
                "session_id": session_id,
                "format": export_format,
                "filename": filename,
                "file_path": str(directory / filename),
            },
        )
        snapshot = list(data) if isinstance(data, (list, tuple)) else data
        task = asyncio.get_running_loop().create_task(
            self._perform_export(job_id, snapshot, metadata, on_finished)
        )
        self._export_tasks[job_id] = task
        task.add_done_callback(lambda _: self._export_tasks.pop(job_id, None))

        return self.jobs.get(job_id)

    async def _perform_export(
        self,
        job_id: str,
        data: Any,
        metadata: Optional[Union[ExportMetadata, Dict[str, Any]]],
        on_finished: Optional[ExportListener],
    ) -> None:
        job = self.jobs.get(job_id)
        if job.status == JobStatus.CANCELLED:
            logger.info(f"Export {job_id} was cancelled before it started")
            return

        self.jobs.mark_running(job_id)
        try:
            if not isinstance(metadata, ExportMetadata):
                metadata = ExportMetadata(**(metadata or {}))
            rows = self.to_rows(data, metadata)
            job.metadata = metadata
            job.record_count = len(rows)
            file_size = await asyncio.to_thread(
                self.writers.write, job.format, rows, Path(job.file_path), metadata
            )
        except Exception as e:
            logger.error(f"Export {job_id} failed: {e}")
            self.jobs.fail(job_id, str(e))
        else:
            if job.status == JobStatus.CANCELLED:
                logger.info(f"Export {job_id} was cancelled; discarding result")
                return
            self.jobs.complete(job_id, file_size=file_size)
            logger.info(f"Exported {len(rows)} rows to {job.file_path} ({file_size} bytes)")

        if on_finished is not None:
            try:
                on_finished(job)
            except Exception as e:
                logger.error(f"Export listener for {job_id} failed: {e}")

    async def wait_for_export(self, job_id: str) -> ExportJob:
        """Wait for a background export to finish and return its job."""
        task = self._export_tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return self.jobs.get(job_id)

    @staticmethod
    def to_rows(
        data: Iterable[Union[ProcessedRecord, AggregatedData, Dict[str, Any]]],
        metadata: ExportMetadata,
    ) -> Rows:
        """Flatten exportable items into plain rows and apply export filters."""
        rows: Rows = []
        for item in data:
            if isinstance(item, ProcessedRecord):
                if metadata.exclude_flagged and item.flagged_for_exclusion:
                    continue
                row = dict(item.processed)
            elif isinstance(item, AggregatedData):
                row = {"group": item.group_key, **item.aggregated}
            else:
                row = dict(item)

            if all(row.get(key) == value for key, value in metadata.filters.items()):
                rows.append(row)
        return rows

    def get_processing_job(self, job_id: str) -> Optional[ProcessingJob]:
        return self.jobs.get_processing_job(job_id)

    def get_export_job(self, job_id: str) -> Optional[ExportJob]:
        return self.jobs.get_export_job(job_id)

    def cleanup_jobs(self, now: Optional[datetime] = None) -> int:
        return self.jobs.cleanup_jobs(now)

    def start(self) -> None:
        self.jobs.start()

    async def shutdown(self) -> None:
        """Let pending exports finish, then stop the job sweep."""
        if self._export_tasks:
            await asyncio.gather(*self._export_tasks.values(), return_exceptions=True)
        await self.jobs.shutdown()
