"""
In-memory state management for podcast processing jobs.

This module owns every job record and the FIFO queue of pending work:
- All reads and writes go through one lock
- Callers get snapshot copies, never the live record
- Terminal statuses are final; late updates are dropped
"""

import copy
import logging
import random
import string
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from queue import Empty, Queue
from typing import Any, Dict, List, Optional

from ..audio.models import ProcessingOptions, SourceKind
from ..errors import JobAccessError

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Cancelled by user"


class JobStatus(Enum):
    """Overall job status."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass
class SubmissionRequest:
    """A validated job submission handed over by the HTTP layer."""

    type: SourceKind
    file_path: Optional[str] = None
    original_filename: Optional[str] = None
    url: Optional[str] = None
    options: ProcessingOptions = field(default_factory=ProcessingOptions)

    @property
    def source_reference(self) -> Optional[str]:
        return self.file_path if self.type == SourceKind.FILE else self.url


@dataclass
class Job:
    """One request to summarize one audio source."""

    id: str
    owner_id: str
    source_kind: SourceKind
    source_reference: Optional[str]
    options: ProcessingOptions
    original_filename: Optional[str] = None
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    error: Optional[str] = None
    summary_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    @property
    def url(self) -> Optional[str]:
        return self.source_reference if self.source_kind == SourceKind.URL else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "type": self.source_kind.value,
            "original_filename": self.original_filename,
            "url": self.url,
            "options": self.options.to_dict(),
            "status": self.status.value,
            "progress": self.progress,
            "error": self.error,
            "summary_id": self.summary_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


def generate_id(prefix: str) -> str:
    """``<prefix>_<epoch ms>_<7 random chars>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"


class JobManager:
    """Registry of jobs plus the single-consumer queue feeding the worker."""

    UPDATABLE_FIELDS = {"status", "progress", "error", "summary_id", "completed_at"}

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._pending: Queue = Queue()
        self._queued_ids: List[str] = []
        # Jobs cancelled before any worker claimed them; their sources await release
        self._discarded: List[Job] = []
        self._lock = threading.Lock()

    def create_job(self, owner_id: str, request: SubmissionRequest) -> Job:
        """
        Create a queued job and append it to the FIFO queue.

        Args:
            owner_id: Identity of the submitting user
            request: Validated submission

        Returns:
            Snapshot of the new job (status queued, progress 0)
        """
        job = Job(
            id=generate_id("job"),
            owner_id=owner_id,
            source_kind=request.type,
            source_reference=request.source_reference,
            options=request.options,
            original_filename=request.original_filename,
        )

        with self._lock:
            self._jobs[job.id] = job
            self._queued_ids.append(job.id)
            self._pending.put(job.id)
            snapshot = copy.deepcopy(job)

        logger.info(
            f"Job {job.id} created for {owner_id}: type={request.type.value}, "
            f"detail={request.options.detail.value}, timestamps={request.options.timestamps}"
        )
        return snapshot

    def get_job(self, job_id: str, owner_id: Optional[str] = None) -> Optional[Job]:
        """
        Get a snapshot of a job.

        Raises:
            JobAccessError: If ``owner_id`` is given and does not own the job
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            if owner_id is not None and job.owner_id != owner_id:
                raise JobAccessError(f"Job {job_id} belongs to another user")
            return copy.deepcopy(job)

    def update_job(self, job_id: str, **updates: Any) -> bool:
        """
        Merge fields into a job and refresh its timestamp.

        Progress never moves backwards and a job in a terminal status is never
        modified again.

        Returns:
            True if the update was applied
        """
        unknown = set(updates) - self.UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {', '.join(sorted(unknown))}")

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status.is_terminal:
                return False

            if "progress" in updates:
                progress = max(0, min(100, int(updates.pop("progress"))))
                job.progress = max(job.progress, progress)

            for key, value in updates.items():
                setattr(job, key, value)

            job.updated_at = datetime.now()
            if job.status == JobStatus.COMPLETED and job.completed_at is None:
                job.completed_at = job.updated_at
            return True

    def complete_job(self, job_id: str, summary_id: str) -> bool:
        return self.update_job(job_id, status=JobStatus.COMPLETED, progress=100, summary_id=summary_id)

    def fail_job(self, job_id: str, error: str) -> bool:
        return self.update_job(job_id, status=JobStatus.FAILED, error=error)

    def cancel_job(self, job_id: str) -> bool:
        """
        Cancel a queued or processing job.

        A queued job leaves the queue. A processing job is only marked failed;
        the stage currently running is not interrupted.

        Returns:
            False if the job is unknown or already completed/failed
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status.is_terminal:
                return False

            if job.status == JobStatus.QUEUED and job_id in self._queued_ids:
                self._queued_ids.remove(job_id)

            previous = job.status
            job.status = JobStatus.FAILED
            job.error = CANCELLED_MESSAGE
            job.updated_at = datetime.now()
            if previous == JobStatus.QUEUED:
                self._discarded.append(copy.deepcopy(job))

        logger.info(f"Job {job_id} cancelled (was {previous.value})")
        return True

    def take_discarded(self) -> List[Job]:
        """Hand over (and forget) the jobs cancelled while still queued."""
        with self._lock:
            discarded, self._discarded = self._discarded, []
        return discarded

    def is_cancelled(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            return job is not None and job.status == JobStatus.FAILED and job.error == CANCELLED_MESSAGE

    def next_job(self, timeout: Optional[float] = None) -> Optional[Job]:
        """
        Take the next queued job and claim it for processing.

        Entries whose job was cancelled (or removed) while waiting are skipped.
        The claim flips queued to processing under the lock, so a job is
        handed out at most once.

        Args:
            timeout: Seconds to wait for work; None blocks, 0 polls

        Returns:
            Snapshot of the claimed job, or None if nothing arrived in time
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                if remaining == 0.0:
                    job_id = self._pending.get_nowait()
                else:
                    job_id = self._pending.get(timeout=remaining)
            except Empty:
                return None

            with self._lock:
                job = self._jobs.get(job_id)
                if job is None or job.status != JobStatus.QUEUED:
                    continue
                if job_id in self._queued_ids:
                    self._queued_ids.remove(job_id)
                job.status = JobStatus.PROCESSING
                job.progress = 0
                job.updated_at = datetime.now()
                return copy.deepcopy(job)

    def list_jobs(
        self, owner_id: Optional[str] = None, status_filter: Optional[str] = None, limit: int = 100
    ) -> List[Job]:
        """
        List jobs, newest first.

        Args:
            owner_id: Only jobs owned by this user
            status_filter: Only jobs with this status value
            limit: Maximum number of jobs to return
        """
        with self._lock:
            jobs = [
                copy.deepcopy(job)
                for job in self._jobs.values()
                if (owner_id is None or job.owner_id == owner_id)
                and (status_filter is None or job.status.value == status_filter)
            ]

        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[:limit]

    def queue_status(self) -> Dict[str, Any]:
        with self._lock:
            processing = [j.id for j in self._jobs.values() if j.status == JobStatus.PROCESSING]
            return {
                "queue_length": len(self._queued_ids),
                "queued_jobs": list(self._queued_ids),
                "processing_jobs": processing,
                "total_jobs": len(self._jobs),
            }

    def cleanup_old_jobs(self, max_age_seconds: float = 24 * 60 * 60) -> int:
        """
        Forget finished jobs older than ``max_age_seconds``.

        Queued and processing jobs are kept regardless of age.

        Returns:
            Number of jobs removed
        """
        cutoff = datetime.now() - timedelta(seconds=max_age_seconds)
        with self._lock:
            stale = [
                job_id
                for job_id, job in self._jobs.items()
                if job.status.is_terminal and job.created_at < cutoff
            ]
            for job_id in stale:
                del self._jobs[job_id]
            remaining = len(self._jobs)

        logger.info(f"Cleaned up {len(stale)} old job(s), {remaining} remaining")
        return len(stale)
