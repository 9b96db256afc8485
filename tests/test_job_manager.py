"""
Tests for the job registry and its FIFO queue.
"""

from datetime import datetime, timedelta

import pytest

from podsum.audio.models import DetailLevel, ProcessingOptions, SourceKind
from podsum.errors import JobAccessError
from podsum.server.job_manager import CANCELLED_MESSAGE, JobManager, JobStatus, SubmissionRequest


def _request(name="episode.mp3", **option_overrides):
    return SubmissionRequest(
        type=SourceKind.FILE,
        file_path=f"/uploads/{name}",
        original_filename=name,
        options=ProcessingOptions(**option_overrides),
    )


@pytest.fixture
def manager():
    return JobManager()


def test_create_job_starts_queued(manager):
    job = manager.create_job("alice", _request(detail=DetailLevel.DEEP))

    assert job.id.startswith("job_")
    assert job.status == JobStatus.QUEUED
    assert job.progress == 0
    assert job.options.detail == DetailLevel.DEEP
    assert manager.queue_status()["queued_jobs"] == [job.id]


def test_get_job_returns_snapshot(manager):
    job = manager.create_job("alice", _request())

    snapshot = manager.get_job(job.id)
    snapshot.progress = 99

    assert manager.get_job(job.id).progress == 0


def test_get_job_rejects_foreign_owner(manager):
    job = manager.create_job("alice", _request())

    with pytest.raises(JobAccessError):
        manager.get_job(job.id, owner_id="bob")
    assert manager.get_job(job.id, owner_id="alice").id == job.id
    assert manager.get_job("job_missing") is None


def test_progress_never_moves_backwards(manager):
    job = manager.create_job("alice", _request())
    manager.next_job(timeout=0)

    manager.update_job(job.id, progress=50)
    manager.update_job(job.id, progress=30)
    assert manager.get_job(job.id).progress == 50

    manager.update_job(job.id, progress=250)
    assert manager.get_job(job.id).progress == 100


def test_update_rejects_unknown_fields(manager):
    job = manager.create_job("alice", _request())

    with pytest.raises(ValueError):
        manager.update_job(job.id, owner_id="mallory")


def test_terminal_status_is_final(manager):
    job = manager.create_job("alice", _request())
    manager.next_job(timeout=0)
    manager.fail_job(job.id, "Transcription failed: rate limited")

    assert manager.update_job(job.id, progress=90) is False
    assert manager.complete_job(job.id, "sum_1") is False

    failed = manager.get_job(job.id)
    assert failed.status == JobStatus.FAILED
    assert failed.summary_id is None
    assert failed.error == "Transcription failed: rate limited"


def test_complete_job_sets_completion_fields(manager):
    job = manager.create_job("alice", _request())
    manager.next_job(timeout=0)

    assert manager.complete_job(job.id, "sum_1") is True

    completed = manager.get_job(job.id)
    assert completed.status == JobStatus.COMPLETED
    assert completed.progress == 100
    assert completed.summary_id == "sum_1"
    assert completed.completed_at is not None


def test_next_job_is_fifo_and_claims(manager):
    first = manager.create_job("alice", _request("one.mp3"))
    second = manager.create_job("bob", _request("two.mp3"))

    claimed = manager.next_job(timeout=0)
    assert claimed.id == first.id
    assert claimed.status == JobStatus.PROCESSING
    assert manager.get_job(first.id).status == JobStatus.PROCESSING
    assert manager.queue_status()["queued_jobs"] == [second.id]

    assert manager.next_job(timeout=0).id == second.id
    assert manager.next_job(timeout=0) is None


def test_cancel_queued_job_removes_it_from_queue(manager):
    first = manager.create_job("alice", _request("one.mp3"))
    second = manager.create_job("alice", _request("two.mp3"))

    assert manager.cancel_job(first.id) is True

    cancelled = manager.get_job(first.id)
    assert cancelled.status == JobStatus.FAILED
    assert cancelled.error == CANCELLED_MESSAGE
    assert manager.is_cancelled(first.id)
    assert manager.queue_status()["queue_length"] == 1
    assert manager.next_job(timeout=0).id == second.id


def test_cancel_processing_job_marks_failed(manager):
    job = manager.create_job("alice", _request())
    manager.next_job(timeout=0)

    assert manager.cancel_job(job.id) is True
    assert manager.get_job(job.id).status == JobStatus.FAILED
    assert manager.update_job(job.id, progress=70) is False


def test_cancel_rejects_terminal_and_unknown_jobs(manager):
    job = manager.create_job("alice", _request())
    manager.next_job(timeout=0)
    manager.complete_job(job.id, "sum_1")

    assert manager.cancel_job(job.id) is False
    assert manager.cancel_job("job_missing") is False
    assert manager.get_job(job.id).status == JobStatus.COMPLETED


def test_list_jobs_filters_by_owner_and_status(manager):
    mine = manager.create_job("alice", _request("one.mp3"))
    manager.create_job("bob", _request("two.mp3"))
    manager.cancel_job(mine.id)

    assert [j.id for j in manager.list_jobs(owner_id="alice")] == [mine.id]
    assert [j.id for j in manager.list_jobs(status_filter="failed")] == [mine.id]
    assert len(manager.list_jobs()) == 2
    assert len(manager.list_jobs(limit=1)) == 1


def test_cleanup_old_jobs_keeps_active_ones(manager):
    old_done = manager.create_job("alice", _request("old.mp3"))
    old_queued = manager.create_job("alice", _request("waiting.mp3"))
    manager.cancel_job(old_done.id)

    week_ago = datetime.now() - timedelta(days=7)
    for job_id in (old_done.id, old_queued.id):
        manager._jobs[job_id].created_at = week_ago

    assert manager.cleanup_old_jobs() == 1
    assert manager.get_job(old_done.id) is None
    assert manager.get_job(old_queued.id) is not None
