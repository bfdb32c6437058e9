"""Shared test fixtures for the fusion_engine test suite."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Optional

import pytest

from fusion_engine.api.jobs.models import JobRecord
from fusion_engine.api.jobs.registry import JobProcessor, ProcessorRegistry
from fusion_engine.api.jobs.runner import JobRunner
from fusion_engine.api.jobs.store import JobStore


class FakeClock:
    """Manually advanced UTC clock for retention tests."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class CallableProcessor(JobProcessor):
    """Wraps a plain function ``fn(job, progress_callback)`` and counts calls."""

    def __init__(self, fn: Callable[[JobRecord, Any], Any]) -> None:
        self.fn = fn
        self.calls: List[str] = []

    def process(self, job, progress_callback=None):
        self.calls.append(job.job_id)
        return self.fn(job, progress_callback)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return JobStore(retention_seconds=15 * 60, clock=clock)


@pytest.fixture
def registry():
    return ProcessorRegistry()


@pytest.fixture
def runner(store, registry):
    return JobRunner(store, registry)


@pytest.fixture
def make_processor():
    """Factory: ``make_processor(fn)`` → processor calling ``fn(job, progress_callback)``."""
    return CallableProcessor
