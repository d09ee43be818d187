"""Tests for the job tracker."""
from datetime import timedelta

import pytest

from scrape_engine.exceptions import JobNotFoundError
from scrape_engine.models import ExportFormat, JobKind, JobStatus
from scrape_engine.services import JobTracker


@pytest.fixture
def tracker(clock):
    return JobTracker(retention=timedelta(hours=24), clock=clock)


def submit_export(tracker):
    return tracker.submit(
        JobKind.EXPORT,
        {"session_id": "s1", "format": ExportFormat.JSON, "filename": "out.json"},
    )


class TestJobTracker:
    """Tests for JobTracker."""

    def test_submit_and_status(self, tracker):
        job_id = tracker.submit(JobKind.PROCESSING, {"session_id": "s1"})
        job = tracker.status(job_id)

        assert job.status == JobStatus.PENDING
        assert tracker.get_processing_job(job_id) is job
        assert tracker.get_export_job(job_id) is None
        assert len(tracker) == 1

    def test_unknown_job(self, tracker):
        assert tracker.status("missing") is None
        with pytest.raises(JobNotFoundError, match="Job missing not found"):
            tracker.get("missing")

    def test_lifecycle(self, tracker, clock):
        job_id = tracker.submit(JobKind.PROCESSING, {"session_id": "s1"})
        tracker.mark_running(job_id)
        assert tracker.get(job_id).status == JobStatus.RUNNING

        clock.advance(seconds=5)
        job = tracker.complete(job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.end_time == clock.now

    def test_finishes_exactly_once(self, tracker):
        """Test later finish calls do not change a finished job."""
        job_id = tracker.submit(JobKind.PROCESSING, {"session_id": "s1"})
        tracker.complete(job_id)
        tracker.fail(job_id, "too late")

        job = tracker.get(job_id)
        assert job.status == JobStatus.COMPLETED
        assert job.errors == []

    def test_fail_records_error(self, tracker):
        job_id = tracker.submit(JobKind.PROCESSING, {"session_id": "s1"})
        job = tracker.fail(job_id, "boom")

        assert job.status == JobStatus.FAILED
        assert job.errors[0].record_id == "pipeline"
        assert job.errors[0].error == "boom"

    def test_export_job_fields(self, tracker, clock):
        job_id = submit_export(tracker)
        tracker.mark_running(job_id)
        assert tracker.get(job_id).started == clock.now

        job = tracker.complete(job_id, file_size=128)
        assert job.progress == 100
        assert job.file_size == 128
        assert job.completed == clock.now

    def test_export_failure(self, tracker):
        job = tracker.fail(submit_export(tracker), "disk full")
        assert job.status == JobStatus.FAILED
        assert job.error == "disk full"

    def test_record_progress(self, tracker):
        job_id = tracker.submit(JobKind.PROCESSING, {"session_id": "s1", "total_records": 4})
        tracker.record_progress(job_id, processed=1, total=4, attempted=2)

        job = tracker.get(job_id)
        assert job.processed_records == 1
        assert job.progress == 50

    def test_cancel(self, tracker):
        job_id = submit_export(tracker)
        assert tracker.cancel(job_id).status == JobStatus.CANCELLED
        assert tracker.complete(job_id).status == JobStatus.CANCELLED

    def test_cleanup_retention(self, tracker, clock):
        """Test only jobs finished longer ago than the retention window are removed."""
        old = tracker.submit(JobKind.PROCESSING, {"session_id": "s1"})
        tracker.complete(old)
        clock.advance(hours=20)
        recent = submit_export(tracker)
        tracker.complete(recent)
        running = tracker.submit(JobKind.PROCESSING, {"session_id": "s1"})
        tracker.mark_running(running)

        clock.advance(hours=5)
        assert tracker.cleanup_jobs() == 1
        assert tracker.status(old) is None
        assert tracker.status(recent) is not None
        assert tracker.status(running) is not None

        clock.advance(hours=100)
        assert tracker.cleanup_jobs() == 1
        assert tracker.status(running) is not None

    def test_zero_retention(self, clock):
        tracker = JobTracker(retention=timedelta(0), clock=clock)
        job_id = tracker.submit(JobKind.PROCESSING, {"session_id": "s1"})
        tracker.complete(job_id)

        clock.advance(seconds=1)
        assert tracker.cleanup_jobs() == 1
        assert tracker.status(job_id) is None

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, tracker):
        tracker.start()
        assert tracker._sweeper.running
        await tracker.shutdown()
        assert not tracker._sweeper.running
