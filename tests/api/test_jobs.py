"""Tests for the job store: lifecycle, owner accounting, eviction."""
import pytest

from fusion_engine.api.jobs.models import JobStatus
from fusion_engine.api.jobs.store import InvalidJobTransition, JobStore


def test_create_and_get_job(store):
    rec = store.create("echo", {"n": 5}, owner="ownerA")
    assert rec.job_type == "echo"
    assert rec.status == JobStatus.queued
    assert rec.progress == 0
    assert rec.owner == "ownerA"
    assert rec.created_at == rec.updated_at

    fetched = store.get(rec.job_id)
    assert fetched is not None
    assert fetched.job_id == rec.job_id
    assert fetched.payload == {"n": 5}


def test_job_ids_are_unique(store):
    ids = {store.create("echo").job_id for _ in range(50)}
    assert len(ids) == 50


def test_get_nonexistent_job(store):
    assert store.get("nonexistent") is None


def test_get_returns_copy(store):
    rec = store.create("echo")
    fetched = store.get(rec.job_id)
    fetched.status = JobStatus.failed
    assert store.get(rec.job_id).status == JobStatus.queued


def test_update_applies_only_given_fields(store, clock):
    rec = store.create("echo")
    clock.advance(seconds=5)
    updated = store.update(rec.job_id, status=JobStatus.running)
    assert updated.status == JobStatus.running
    assert updated.progress == 0
    assert updated.result is None
    assert updated.updated_at > rec.updated_at


def test_update_refreshes_updated_at_on_progress(store, clock):
    rec = store.create("echo")
    store.update(rec.job_id, status=JobStatus.running)
    clock.advance(seconds=3)
    updated = store.update(rec.job_id, progress=40)
    assert updated.progress == 40
    assert updated.updated_at == clock.now


def test_update_unknown_job_returns_none_without_side_effects(store):
    store.create("echo")
    before = store.stats()
    assert store.update("missing", status=JobStatus.running, progress=10) is None
    assert store.stats() == before
    assert store.get("missing") is None


def test_progress_is_clamped(store):
    rec = store.create("echo")
    store.update(rec.job_id, status=JobStatus.running)
    assert store.update(rec.job_id, progress=250).progress == 100
    assert store.update(rec.job_id, progress=-3).progress == 0


def test_progress_dropped_unless_running(store):
    rec = store.create("echo")
    dropped = store.update(rec.job_id, progress=50)
    assert dropped.progress == 0

    store.update(rec.job_id, status=JobStatus.running)
    store.update(rec.job_id, status=JobStatus.succeeded, progress=100, result={"ok": True})
    late = store.update(rec.job_id, progress=10)
    assert late.progress == 100
    assert late.status == JobStatus.succeeded


def test_terminal_status_cannot_change(store):
    rec = store.create("echo")
    store.update(rec.job_id, status=JobStatus.running)
    store.update(rec.job_id, status=JobStatus.failed, error="boom")
    with pytest.raises(InvalidJobTransition):
        store.update(rec.job_id, status=JobStatus.running)
    with pytest.raises(InvalidJobTransition):
        store.update(rec.job_id, status=JobStatus.succeeded, result={})
    assert store.get(rec.job_id).status == JobStatus.failed


def test_running_cannot_return_to_queued(store):
    rec = store.create("echo")
    store.update(rec.job_id, status=JobStatus.running)
    with pytest.raises(InvalidJobTransition):
        store.update(rec.job_id, status=JobStatus.queued)


def test_queued_job_cannot_fail_without_running(store):
    rec = store.create("echo", owner="ownerA")
    with pytest.raises(InvalidJobTransition):
        store.update(rec.job_id, status=JobStatus.failed, error="x")
    fetched = store.get(rec.job_id)
    assert fetched.status == JobStatus.queued
    assert fetched.error is None


def test_result_only_on_success_and_error_only_on_failure(store):
    rec = store.create("echo")
    store.update(rec.job_id, status=JobStatus.running)
    with pytest.raises(InvalidJobTransition):
        store.update(rec.job_id, result={"n": 1})
    with pytest.raises(InvalidJobTransition):
        store.update(rec.job_id, status=JobStatus.succeeded, error="nope")
    assert store.get(rec.job_id).status == JobStatus.running


# ── Admission control ────────────────────────────────────────────────


def test_can_admit_counts_only_active_jobs(store):
    a = store.create("echo", owner="ownerB")
    store.create("echo", owner="ownerB")
    assert store.can_admit("ownerB", 2) is False
    assert store.can_admit("ownerB", 3) is True

    store.update(a.job_id, status=JobStatus.running)
    assert store.can_admit("ownerB", 2) is False

    store.update(a.job_id, status=JobStatus.succeeded, progress=100, result={})
    assert store.can_admit("ownerB", 2) is True


def test_can_admit_is_per_owner(store):
    store.create("echo", owner="ownerA")
    store.create("echo", owner="ownerA")
    assert store.can_admit("ownerA", 2) is False
    assert store.can_admit("ownerC", 2) is True


def test_can_admit_anonymous_always_true(store):
    for _ in range(5):
        store.create("echo")
    assert store.can_admit(None, 1) is True
    assert store.owner_mapping() == {}


def test_denied_admission_is_not_retroactive(store):
    store.create("echo", owner="ownerB")
    store.create("echo", owner="ownerB")
    denied = store.can_admit("ownerB", 2)
    store.create("echo", owner="ownerB")
    assert denied is False
    assert store.active_count("ownerB") == 3


# ── Eviction ─────────────────────────────────────────────────────────


def _finish(store, job_id, status=JobStatus.succeeded):
    store.update(job_id, status=JobStatus.running)
    if status == JobStatus.succeeded:
        store.update(job_id, status=status, progress=100, result={"done": True})
    else:
        store.update(job_id, status=status, error="boom")


def test_evict_stale_removes_only_old_terminal_jobs(clock):
    # Long default retention so create() does not evict before the explicit call.
    store = JobStore(retention_seconds=10**9, clock=clock)
    old_ok = store.create("echo", owner="ownerA")
    old_bad = store.create("echo", owner="ownerA")
    old_queued = store.create("echo", owner="ownerA")
    old_running = store.create("echo", owner="ownerA")
    _finish(store, old_ok.job_id)
    _finish(store, old_bad.job_id, JobStatus.failed)
    store.update(old_running.job_id, status=JobStatus.running)

    clock.advance(minutes=20)
    fresh = store.create("echo", owner="ownerA")
    _finish(store, fresh.job_id)

    removed = store.evict_stale(15 * 60)
    assert removed == 2
    assert store.get(old_ok.job_id) is None
    assert store.get(old_bad.job_id) is None
    assert store.get(old_queued.job_id) is not None
    assert store.get(old_running.job_id) is not None
    assert store.get(fresh.job_id) is not None


def test_evict_stale_boundary_is_strict(store, clock):
    rec = store.create("echo")
    _finish(store, rec.job_id)
    clock.advance(minutes=15)
    assert store.evict_stale(15 * 60) == 0
    assert store.get(rec.job_id) is not None
    clock.advance(seconds=1)
    assert store.evict_stale(15 * 60) == 1
    assert store.get(rec.job_id) is None


def test_evict_never_touches_active_jobs_regardless_of_age(store, clock):
    queued = store.create("echo")
    running = store.create("echo")
    store.update(running.job_id, status=JobStatus.running)
    clock.advance(days=30)
    assert store.evict_stale(0) == 0
    assert len(store) == 2


def test_create_evicts_opportunistically(clock):
    store = JobStore(retention_seconds=60, clock=clock)
    rec = store.create("echo")
    _finish(store, rec.job_id)
    clock.advance(seconds=61)
    store.create("echo")
    assert store.get(rec.job_id) is None
    assert len(store) == 1


def test_eviction_prunes_owner_index(store, clock):
    rec = store.create("echo", owner="ownerA")
    _finish(store, rec.job_id)
    clock.advance(minutes=16)
    store.evict_stale()
    assert "ownerA" not in store.owner_mapping()


# ── Removal & diagnostics ────────────────────────────────────────────


def test_remove_job(store):
    rec = store.create("echo", owner="ownerA")
    assert store.remove(rec.job_id) is True
    assert store.get(rec.job_id) is None
    assert store.owner_mapping() == {}
    assert store.remove(rec.job_id) is False


def test_remove_running_job_then_late_update_is_noop(store):
    rec = store.create("echo")
    store.update(rec.job_id, status=JobStatus.running)
    assert store.remove(rec.job_id) is True
    assert store.update(rec.job_id, progress=80) is None
    assert store.update(rec.job_id, status=JobStatus.succeeded, result={}) is None
    assert len(store) == 0


def test_stats(store):
    a = store.create("echo")
    b = store.create("echo")
    store.create("echo")
    store.update(a.job_id, status=JobStatus.running)
    _finish(store, b.job_id, JobStatus.failed)
    assert store.stats() == {"total": 3, "queued": 1, "running": 1, "succeeded": 0, "failed": 1}


def test_list_jobs_newest_first_and_by_owner(store, clock):
    first = store.create("echo", owner="ownerA")
    clock.advance(seconds=1)
    second = store.create("echo", owner="ownerB")
    clock.advance(seconds=1)
    third = store.create("echo", owner="ownerA")

    assert [j.job_id for j in store.list_jobs()] == [third.job_id, second.job_id, first.job_id]
    assert [j.job_id for j in store.list_jobs(owner="ownerA")] == [third.job_id, first.job_id]
    assert len(store.list_jobs(limit=1)) == 1
    assert store.owner_mapping() == {
        "ownerA": sorted([first.job_id, third.job_id]),
        "ownerB": [second.job_id],
    }


def test_public_view_hides_payload_and_owner(store):
    rec = store.create("echo", {"secret": "x"}, owner="ownerA")
    view = rec.public_view()
    assert "payload" not in view
    assert "owner" not in view
    assert view["status"] == "queued"
