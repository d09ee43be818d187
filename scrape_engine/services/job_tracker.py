"""Tracks processing and export jobs as addressable, pollable handles."""
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Union

from ..config import settings
from ..exceptions import JobNotFoundError
from ..models import ExportJob, JobKind, JobStatus, ProcessingJob, RecordError
from ..utils.logger import logger
from ..utils.periodic import PeriodicTask

Job = Union[ProcessingJob, ExportJob]


class JobTracker:
    """In-memory job store with a retention sweep.

    Jobs move ``pending -> running -> completed | failed`` and finish exactly
    once; later finish calls are ignored. ``cancelled`` is only set by
    callers through ``cancel()``.
    """

    def __init__(
        self,
        retention: Optional[timedelta] = None,
        cleanup_interval: Optional[float] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.retention = (
            retention if retention is not None else timedelta(hours=settings.job_retention_hours)
        )
        self.clock = clock
        self._processing_jobs: Dict[str, ProcessingJob] = {}
        self._export_jobs: Dict[str, ExportJob] = {}
        self._sweeper = PeriodicTask(
            "job cleanup",
            cleanup_interval if cleanup_interval is not None else settings.cleanup_interval_seconds,
            self.cleanup_jobs,
        )

    def submit(self, kind: JobKind, payload: dict) -> str:
        """Register a new job and return its id."""
        if kind == JobKind.PROCESSING:
            job: Job = ProcessingJob(start_time=self.clock(), **payload)
            self._processing_jobs[job.id] = job
        else:
            job = ExportJob(created=self.clock(), **payload)
            self._export_jobs[job.id] = job
        logger.debug(f"Submitted {kind.value} job {job.id}")
        return job.id

    def status(self, job_id: str) -> Optional[Job]:
        return self._processing_jobs.get(job_id) or self._export_jobs.get(job_id)

    def get(self, job_id: str) -> Job:
        job = self.status(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def get_processing_job(self, job_id: str) -> Optional[ProcessingJob]:
        return self._processing_jobs.get(job_id)

    def get_export_job(self, job_id: str) -> Optional[ExportJob]:
        return self._export_jobs.get(job_id)

    def mark_running(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job.status.is_finished:
            return job
        job.status = JobStatus.RUNNING
        if isinstance(job, ExportJob):
            job.started = self.clock()
        return job

    def record_progress(
        self, job_id: str, processed: int, total: int, attempted: Optional[int] = None
    ) -> None:
        """Update counters. Progress follows attempted records, which include failures."""
        job = self.get(job_id)
        if isinstance(job, ProcessingJob):
            job.processed_records = processed
        attempted = processed if attempted is None else attempted
        job.progress = round(attempted / total * 100) if total else 100

    def record_error(self, job_id: str, record_id: str, error: str) -> None:
        job = self.get(job_id)
        if isinstance(job, ProcessingJob):
            job.errors.append(RecordError(record_id=record_id, error=error, timestamp=self.clock()))
        else:
            job.error = error

    def complete(self, job_id: str, **fields) -> Job:
        return self._finish(job_id, JobStatus.COMPLETED, **fields)

    def fail(self, job_id: str, error: str) -> Job:
        job = self.get(job_id)
        if not job.status.is_finished and isinstance(job, ProcessingJob):
            job.errors.append(RecordError(record_id="pipeline", error=error, timestamp=self.clock()))
        return self._finish(job_id, JobStatus.FAILED, error=error)

    def cancel(self, job_id: str) -> Job:
        return self._finish(job_id, JobStatus.CANCELLED)

    def _finish(self, job_id: str, status: JobStatus, **fields) -> Job:
        job = self.get(job_id)
        if job.status.is_finished:
            logger.warning(f"Job {job_id} already {job.status.value}; ignoring {status.value}")
            return job

        now = self.clock()
        job.status = status
        if isinstance(job, ProcessingJob):
            job.end_time = now
        else:
            job.completed = now
            if status == JobStatus.COMPLETED:
                job.progress = 100
            for key, value in fields.items():
                setattr(job, key, value)
        logger.info(f"Job {job_id} {status.value}")
        return job

    def cleanup_jobs(self, now: Optional[datetime] = None) -> int:
        """Delete finished jobs older than the retention window."""
        now = now or self.clock()
        removed = 0
        for jobs in (self._processing_jobs, self._export_jobs):
            for job_id in [
                job_id
                for job_id, job in jobs.items()
                if job.finished_at is not None and now - job.finished_at > self.retention
            ]:
                del jobs[job_id]
                removed += 1

        if removed:
            logger.info(f"Cleaned up {removed} finished jobs")
        return removed

    def start(self) -> None:
        self._sweeper.start()

    async def shutdown(self) -> None:
        await self._sweeper.stop()

    def __len__(self) -> int:
        return len(self._processing_jobs) + len(self._export_jobs)
