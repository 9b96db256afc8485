"""
Podcast processing server package.

This package provides a Flask API server with a single-worker queue that
drives jobs through acquisition, transcription, summarization and result
assembly.
"""

from .app import create_app
from .job_manager import Job, JobManager, JobStatus, SubmissionRequest
from .models import Summary
from .processing_queue import ProcessingQueue
from .processor import PodcastProcessor

__all__ = [
    "create_app",
    "Job",
    "JobManager",
    "JobStatus",
    "SubmissionRequest",
    "Summary",
    "ProcessingQueue",
    "PodcastProcessor",
]
