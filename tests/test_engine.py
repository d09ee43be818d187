"""Tests for the engine facade."""
import pytest

from scrape_engine.exceptions import CapacityError, PipelineError, SessionNotFoundError
from scrape_engine.models import (
    AggregationRule,
    CleaningRule,
    EventType,
    ExportFormat,
    JobStatus,
    ValidationRule,
)
from scrape_engine.services import (
    DataPipeline,
    ExportWriterRegistry,
    FunctionRegistry,
    JobTracker,
    ScrapeEngine,
    SessionManager,
)


@pytest.fixture
def events(engine):
    received = []
    engine.subscribe(None, None, received.append)
    return received


@pytest.fixture
def session(engine):
    """Create a session holding three raw records."""
    session = engine.create_session(description="Engine test")
    for name, price in [(" Widget ", "$10"), ("Gadget", "$20"), ("Gizmo", "$30")]:
        engine.add_extracted_data(session.id, {"raw": {"name": name, "price": price}})
    return session


class TestProcessing:
    """Tests for ScrapeEngine.process_batch."""

    @pytest.mark.asyncio
    async def test_processes_session_buffer(self, engine, session):
        rules = [
            CleaningRule(field="name", operation="trim"),
            CleaningRule(field="price", operation="transform", parameters={"transformer": "parseNumber"}),
        ]
        job, records = await engine.process_batch(session.id, cleaning_rules=rules)

        assert job.status == JobStatus.COMPLETED
        assert [r.processed["price"] for r in records] == [10, 20, 30]
        assert session.data.cleaned_data == records
        assert session.data.statistics.record_count == 3
        assert engine.get_processing_job(job.id) is job

    @pytest.mark.asyncio
    async def test_buffer_replaces_and_batches_append(self, engine, session):
        await engine.process_data(session.id)
        await engine.process_data(session.id)
        assert len(session.data.cleaned_data) == 3

        await engine.process_data(session.id, [{"raw": {"name": "Extra"}}])
        assert len(session.data.cleaned_data) == 4

    @pytest.mark.asyncio
    async def test_quality_metrics_updated(self, engine, session):
        validation = [ValidationRule(type="required", field="name")]
        await engine.process_data(session.id, validation_rules=validation)

        quality = session.progress.quality
        assert quality.completeness == 1.0
        assert quality.accuracy == pytest.approx(0.5)
        assert quality.duplicates == 0
        assert quality.errors == 0
        assert quality.score > 0

    @pytest.mark.asyncio
    async def test_data_cleaned_event(self, engine, session, events):
        job, _ = await engine.process_batch(session.id)

        cleaned = [e for e in events if e.type == EventType.DATA_CLEANED]
        assert cleaned[0].session_id == session.id
        assert cleaned[0].data == {"job_id": job.id, "processed": 3, "errors": 0}

    @pytest.mark.asyncio
    async def test_record_errors_counted_on_session(self, engine, session, registry):
        def reject_gadget(value, parameters=None):
            if value == "Gadget":
                raise ValueError("no gadgets")
            return value

        registry.register_transformer("rejectGadget", reject_gadget)
        rules = [CleaningRule(field="name", operation="transform", parameters={"transformer": "rejectGadget"})]
        job, records = await engine.process_batch(session.id, cleaning_rules=rules)

        assert len(records) == 2
        assert len(job.errors) == 1
        assert session.progress.errors_encountered == 1
        assert session.progress.quality.errors == 1

    @pytest.mark.asyncio
    async def test_pipeline_error_recorded(self, engine, session):
        with pytest.raises(PipelineError):
            await engine.process_data(session.id, 42)
        assert session.progress.errors_encountered == 1

    @pytest.mark.asyncio
    async def test_unknown_session(self, engine):
        with pytest.raises(SessionNotFoundError):
            await engine.process_data("missing")


class TestAnalysis:
    """Tests for session aggregation and description."""

    @pytest.mark.asyncio
    async def test_aggregate_session(self, engine, session):
        rules = [CleaningRule(field="price", operation="transform", parameters={"transformer": "parseNumber"})]
        await engine.process_data(session.id, cleaning_rules=rules)

        groups = engine.aggregate_session(
            session.id, [AggregationRule(fields=["price"], operation="max")]
        )
        assert groups[0].aggregated["price"] == 30
        assert session.data.aggregated_data == groups

    @pytest.mark.asyncio
    async def test_describe_session(self, engine, session):
        await engine.process_data(session.id)
        data_schema, stats = engine.describe_session(session.id)

        assert {f.name for f in data_schema.fields} == {"name", "price"}
        assert session.data.data_schema is data_schema
        assert stats.record_count == 3

    def test_require_session(self, engine):
        with pytest.raises(SessionNotFoundError):
            engine.aggregate_session("missing", [AggregationRule(fields=["x"], operation="sum")])


class TestExport:
    """Tests for ScrapeEngine.export_data."""

    @pytest.mark.asyncio
    async def test_export_events(self, engine, session, events, tmp_path):
        await engine.process_data(session.id)
        job = await engine.export_data(session.id, None, ExportFormat.JSON, "cleaned.json")

        assert events[-1].type == EventType.EXPORT_STARTED
        assert events[-1].data["format"] == "json"

        job = await engine.wait_for_export(job.id)
        assert job.status == JobStatus.COMPLETED
        assert job.record_count == 3
        assert (tmp_path / session.id / "cleaned.json").exists()

        completed = events[-1]
        assert completed.type == EventType.EXPORT_COMPLETED
        assert completed.data["file_size"] == job.file_size
        assert engine.get_job(job.id) is job

    @pytest.mark.asyncio
    async def test_failed_export_emits_error(self, engine, session, events):
        job = await engine.export_data(session.id, [{"a": 1}], "xml", "out.xml")
        job = await engine.wait_for_export(job.id)

        assert job.status == JobStatus.FAILED
        assert events[-1].type == EventType.ERROR_OCCURRED
        assert events[-1].data["job_id"] == job.id
        assert events[-1].data["fatal"] is False
        # A failed export does not fail the session
        assert session.status.value == "created"

    @pytest.mark.asyncio
    async def test_unknown_format_name_fails_job(self, engine, session, events):
        job = await engine.export_data(session.id, [{"a": 1}], "pdf", "out.pdf")
        assert job.status == JobStatus.PENDING
        assert events[-1].type == EventType.EXPORT_STARTED
        assert events[-1].data["format"] == "pdf"

        job = await engine.wait_for_export(job.id)
        assert job.status == JobStatus.FAILED
        assert job.error == "No writer registered for format pdf"
        assert events[-1].type == EventType.ERROR_OCCURRED

    @pytest.mark.asyncio
    async def test_non_mapping_item_fails_job(self, engine, session, events):
        job = await engine.export_data(session.id, [{"a": 1}, "junk"], "json", "out.json")
        assert job.status == JobStatus.PENDING

        job = await engine.wait_for_export(job.id)
        assert job.status == JobStatus.FAILED
        assert events[-1].type == EventType.ERROR_OCCURRED
        assert events[-1].data["job_id"] == job.id

    @pytest.mark.asyncio
    async def test_export_unknown_session(self, engine):
        with pytest.raises(SessionNotFoundError):
            await engine.export_data("missing", [], "json", "out.json")

    @pytest.mark.asyncio
    async def test_start_and_shutdown(self, engine, session, clock):
        engine.start()
        assert engine.sessions._sweeper.running

        clock.advance(hours=1)
        await engine.shutdown()
        assert not engine.sessions._sweeper.running
        assert not engine.pipeline.jobs._sweeper.running
        assert len(engine.sessions) == 0


class TestConstruction:
    """Tests for wiring injected components."""

    def test_empty_components_are_kept(self, clock, pipeline):
        manager = SessionManager(max_sessions=1, clock=clock)
        engine = ScrapeEngine(sessions=manager, pipeline=pipeline)

        assert engine.sessions is manager
        assert engine.pipeline is pipeline
        engine.create_session()
        with pytest.raises(CapacityError):
            engine.create_session()

    def test_empty_tracker_and_registry_are_kept(self, clock):
        tracker = JobTracker(clock=clock)
        registry = FunctionRegistry()
        writers = ExportWriterRegistry()
        pipeline = DataPipeline(registry=registry, job_tracker=tracker, writers=writers)

        assert pipeline.jobs is tracker
        assert pipeline.writers is writers
        assert pipeline.cleaning.registry is registry
