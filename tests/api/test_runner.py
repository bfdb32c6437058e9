"""Tests for the job runner state machine."""
import asyncio
import threading
import time

import pytest

from fusion_engine.api.jobs.models import JobStatus
from fusion_engine.api.jobs.payloads import ImageJobResult
from fusion_engine.api.jobs.runner import JobRunner

_ORDER = {JobStatus.queued: 0, JobStatus.running: 1, JobStatus.succeeded: 2, JobStatus.failed: 2}


async def _wait_terminal(store, job_id, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        rec = store.get(job_id)
        if rec is not None and rec.status.is_terminal:
            return rec
        await asyncio.sleep(0.01)
    raise AssertionError(f"job {job_id} did not finish")


@pytest.mark.asyncio
async def test_echo_round_trip(store, registry, runner, make_processor):
    registry.register("echo", make_processor(lambda job, cb: {"n": job.payload["n"] * 2}))
    rec = store.create("echo", {"n": 5}, "ownerA")

    await runner.run(rec.job_id)

    fetched = store.get(rec.job_id)
    assert fetched.status == JobStatus.succeeded
    assert fetched.result == {"n": 10}
    assert fetched.progress == 100
    assert fetched.error is None


@pytest.mark.asyncio
async def test_processor_failure_recorded(store, registry, runner, make_processor):
    def boom(job, cb):
        raise RuntimeError("upstream unavailable")

    registry.register("boom", make_processor(boom))
    rec = store.create("boom", {}, "ownerA")

    await runner.run(rec.job_id)

    fetched = store.get(rec.job_id)
    assert fetched.status == JobStatus.failed
    assert "upstream unavailable" in fetched.error
    assert fetched.result is None


@pytest.mark.asyncio
async def test_failure_without_message_uses_fallback(store, registry, runner, make_processor):
    def silent(job, cb):
        raise ValueError()

    registry.register("silent", make_processor(silent))
    rec = store.create("silent")
    await runner.run(rec.job_id)
    assert store.get(rec.job_id).error == "Unknown error"


@pytest.mark.asyncio
async def test_unregistered_type_fails_without_processing(store, registry, runner, make_processor):
    other = make_processor(lambda job, cb: None)
    registry.register("echo", other)
    rec = store.create("missing-type", {})

    await runner.run(rec.job_id)

    fetched = store.get(rec.job_id)
    assert fetched.status == JobStatus.failed
    assert fetched.error == "No processor found for job type: missing-type"
    assert other.calls == []


@pytest.mark.asyncio
async def test_single_flight(store, registry, runner, make_processor):
    def slow(job, cb):
        time.sleep(0.05)
        return "done"

    proc = make_processor(slow)
    registry.register("slow", proc)
    rec = store.create("slow")

    await asyncio.gather(runner.run(rec.job_id), runner.run(rec.job_id), runner.run(rec.job_id))

    assert proc.calls == [rec.job_id]
    assert store.get(rec.job_id).status == JobStatus.succeeded
    assert not runner.in_flight(rec.job_id)


@pytest.mark.asyncio
async def test_run_is_noop_for_missing_or_non_queued(store, registry, runner, make_processor):
    proc = make_processor(lambda job, cb: 1)
    registry.register("echo", proc)

    await runner.run("does-not-exist")

    rec = store.create("echo")
    await runner.run(rec.job_id)
    await runner.run(rec.job_id)
    assert proc.calls == [rec.job_id]


@pytest.mark.asyncio
async def test_failed_job_is_not_rerun(store, registry, runner, make_processor):
    def boom(job, cb):
        raise RuntimeError("nope")

    proc = make_processor(boom)
    registry.register("boom", proc)
    rec = store.create("boom")
    await runner.run(rec.job_id)
    await runner.run(rec.job_id)
    assert len(proc.calls) == 1
    assert not runner.in_flight(rec.job_id)


@pytest.mark.asyncio
async def test_statuses_observed_are_monotonic(store, registry, runner, make_processor):
    seen = []

    def watch(job, cb):
        seen.append(store.get(job.job_id).status)
        cb(30)
        seen.append(store.get(job.job_id).status)
        cb(70)
        return {"ok": True}

    registry.register("watch", make_processor(watch))
    rec = store.create("watch")
    seen.append(store.get(rec.job_id).status)
    await runner.run(rec.job_id)
    seen.append(store.get(rec.job_id).status)

    ranks = [_ORDER[s] for s in seen]
    assert ranks == sorted(ranks)
    assert seen[0] == JobStatus.queued
    assert seen[-1] == JobStatus.succeeded


@pytest.mark.asyncio
async def test_progress_visible_while_running(store, registry, runner, make_processor):
    observed = {}

    def report(job, cb):
        assert job.status == JobStatus.running
        cb(50)
        observed["progress"] = store.get(job.job_id).progress
        return None

    registry.register("report", make_processor(report))
    rec = store.create("report")
    await runner.run(rec.job_id)
    assert observed["progress"] == 50
    assert store.get(rec.job_id).progress == 100


@pytest.mark.asyncio
async def test_timeout_marks_job_failed(store, registry, make_processor):
    release = threading.Event()

    def hang(job, cb):
        release.wait(2)
        cb(99)
        return "late"

    registry.register("hang", make_processor(hang))
    runner = JobRunner(store, registry, timeout_seconds=0.05)
    rec = store.create("hang")

    await runner.run(rec.job_id)
    fetched = store.get(rec.job_id)
    assert fetched.status == JobStatus.failed
    assert "timed out" in fetched.error

    release.set()
    await asyncio.sleep(0.05)
    late = store.get(rec.job_id)
    assert late.status == JobStatus.failed
    assert late.progress == 0


@pytest.mark.asyncio
async def test_submit_is_fire_and_forget(store, registry, runner, make_processor):
    def slow(job, cb):
        time.sleep(0.05)
        return {"answer": 42}

    registry.register("slow", make_processor(slow))
    rec = store.create("slow")

    runner.submit(rec.job_id)
    assert store.get(rec.job_id).status in (JobStatus.queued, JobStatus.running)

    done = await _wait_terminal(store, rec.job_id)
    assert done.status == JobStatus.succeeded
    assert done.result == {"answer": 42}


@pytest.mark.asyncio
async def test_removed_mid_run_does_not_raise(store, registry, runner, make_processor):
    def vanish(job, cb):
        store.remove(job.job_id)
        cb(50)
        return "ignored"

    registry.register("vanish", make_processor(vanish))
    rec = store.create("vanish")
    await runner.run(rec.job_id)
    assert store.get(rec.job_id) is None


@pytest.mark.asyncio
async def test_model_result_serialised_in_public_view(store, registry, runner, make_processor):
    registry.register(
        "img",
        make_processor(lambda job, cb: ImageJobResult(image_url="http://x/y.png", width=10, height=20)),
    )
    rec = store.create("img")
    await runner.run(rec.job_id)
    view = store.get(rec.job_id).public_view()
    assert view["result"] == {"image_url": "http://x/y.png", "width": 10, "height": 20}


@pytest.mark.asyncio
async def test_shutdown_cancels_pending_runs(store, registry, make_processor):
    def slow(job, cb):
        time.sleep(0.2)

    registry.register("slow", make_processor(slow))
    runner = JobRunner(store, registry)
    rec = store.create("slow")
    runner.submit(rec.job_id)
    await asyncio.sleep(0.02)
    await runner.shutdown()
    assert runner.pending_count == 0
    assert store.get(rec.job_id).status == JobStatus.failed


@pytest.mark.asyncio
async def test_shutdown_fails_runs_that_never_started(store, registry, make_processor):
    proc = make_processor(lambda job, cb: "never")
    registry.register("echo", proc)
    runner = JobRunner(store, registry)
    rec = store.create("echo", owner="ownerA")

    runner.submit(rec.job_id)
    await runner.shutdown()

    fetched = store.get(rec.job_id)
    assert fetched.status == JobStatus.failed
    assert fetched.error == "Job cancelled during shutdown"
    assert proc.calls == []
    assert store.can_admit("ownerA", 1) is True
    assert runner.pending_count == 0
