"""
Queue-based podcast processing with a single worker thread.

This module drains the JobManager's FIFO queue one job at a time. A single
in-flight pipeline keeps calls to the rate-limited transcription and
summarization services from contending, at the cost of throughput.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional

from .job_manager import JobManager
from .processor import PodcastProcessor

logger = logging.getLogger(__name__)


class ProcessingQueue:
    """Runs queued jobs through the processor, one at a time."""

    def __init__(
        self,
        job_manager: JobManager,
        processor: PodcastProcessor,
        queue_check_interval: float = 1.0,
        job_retention: float = 24 * 60 * 60,
        cleanup_interval: float = 60 * 60,
    ):
        """
        Initialize the processing queue.

        Args:
            job_manager: JobManager instance owning the queue
            processor: Pipeline driver for a single job
            queue_check_interval: How often the worker re-checks its stop flag (seconds)
            job_retention: Finished jobs older than this are forgotten (seconds)
            cleanup_interval: How often old jobs are swept (seconds)
        """
        self.job_manager = job_manager
        self.processor = processor
        self.queue_check_interval = queue_check_interval
        self.job_retention = job_retention
        self.cleanup_interval = cleanup_interval
        self._last_cleanup = time.monotonic()

        self._stop_event = threading.Event()
        self._worker_thread: Optional[threading.Thread] = None
        self._current_job_id: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._worker_thread is not None and self._worker_thread.is_alive()

    def start(self):
        """Start the worker thread."""
        if self.is_running:
            logger.warning("Processing queue is already running")
            return

        self._stop_event.clear()
        self._worker_thread = threading.Thread(target=self._queue_worker, name="podsum-worker", daemon=True)
        self._worker_thread.start()
        logger.info("Processing queue started")

    def stop(self, timeout: float = 5.0):
        """
        Stop the worker after the job it is running, if any.

        The in-flight stage is not interrupted.
        """
        if not self.is_running:
            return

        logger.info("Stopping processing queue...")
        self._stop_event.set()
        self._worker_thread.join(timeout=timeout)
        if self._worker_thread.is_alive():
            logger.warning(f"Worker still busy with job {self._current_job_id} after {timeout}s")
        else:
            logger.info("Processing queue stopped")

    def drain(self) -> int:
        """
        Process every queued job in the calling thread.

        Must not be used while the worker thread is running.

        Returns:
            Number of jobs processed
        """
        if self.is_running:
            raise RuntimeError("Cannot drain while the worker thread is running")

        processed = 0
        while True:
            job = self.job_manager.next_job(timeout=0)
            if job is None:
                self.housekeeping()
                return processed
            self._run(job)
            processed += 1

    def get_queue_status(self) -> Dict[str, Any]:
        """Get status information about the processing queue."""
        status = self.job_manager.queue_status()
        with self._lock:
            status["current_job"] = self._current_job_id
        status["is_running"] = self.is_running
        return status

    def housekeeping(self, force: bool = False) -> None:
        """
        Release uploads of jobs cancelled while queued, and periodically
        forget finished jobs older than the retention period.

        Runs on the worker between jobs, so no pipeline is reading an upload.
        """
        for job in self.job_manager.take_discarded():
            self.processor.release_source(job)

        now = time.monotonic()
        if force or now - self._last_cleanup >= self.cleanup_interval:
            self._last_cleanup = now
            self.job_manager.cleanup_old_jobs(self.job_retention)

    def _queue_worker(self):
        """Main worker loop: one job at a time until stopped."""
        logger.info("Queue worker thread started")

        while not self._stop_event.is_set():
            job = self.job_manager.next_job(timeout=self.queue_check_interval)
            if job is not None:
                self._run(job)
            self.housekeeping()

        logger.info("Queue worker thread stopped")

    def _run(self, job):
        with self._lock:
            self._current_job_id = job.id
        try:
            self.processor.process_job(job)
        except Exception as e:
            # process_job records its own failures; this guards the worker loop
            logger.error(f"Unexpected error processing job {job.id}: {e}", exc_info=True)
            self.job_manager.fail_job(job.id, str(e))
        finally:
            with self._lock:
                self._current_job_id = None
