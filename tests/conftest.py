"""Shared fixtures."""
from datetime import datetime, timedelta

import pytest

from scrape_engine.services import (
    DataPipeline,
    FunctionRegistry,
    JobTracker,
    ScrapeEngine,
    SessionManager,
)


class FakeClock:
    """Manually advanced clock for expiry and retention tests."""

    def __init__(self, start: datetime = datetime(2024, 1, 15, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return FunctionRegistry()


@pytest.fixture
def pipeline(registry, clock, tmp_path):
    """Create a pipeline writing exports under a temp directory."""
    return DataPipeline(
        registry=registry,
        job_tracker=JobTracker(clock=clock),
        export_path=tmp_path,
        clock=clock,
    )


@pytest.fixture
def session_manager(clock):
    return SessionManager(max_sessions=5, session_timeout=timedelta(minutes=30), clock=clock)


@pytest.fixture
def engine(session_manager, pipeline):
    return ScrapeEngine(sessions=session_manager, pipeline=pipeline)
