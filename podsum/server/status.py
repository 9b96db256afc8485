"""
Processing-time estimates and human-readable status messages.
"""

import math

from ..audio.models import DetailLevel, ProcessingOptions, SourceKind
from .job_manager import Job, JobStatus

BASE_ESTIMATE_SECONDS = 60
DETAIL_MULTIPLIERS = {DetailLevel.BRIEF: 0.7, DetailLevel.STANDARD: 1.0, DetailLevel.DEEP: 1.5}
TIMESTAMPS_MULTIPLIER = 1.2
URL_DOWNLOAD_SECONDS = 30


def estimate_processing_time(source_kind: SourceKind, options: ProcessingOptions) -> int:
    """
    Estimate processing time in seconds.

    60s base, scaled by detail level, scaled again when timestamps are
    requested, plus a flat allowance for remote downloads. Halves round up.
    """
    estimate = BASE_ESTIMATE_SECONDS * DETAIL_MULTIPLIERS[options.detail]

    if options.timestamps:
        estimate *= TIMESTAMPS_MULTIPLIER

    if source_kind == SourceKind.URL:
        estimate += URL_DOWNLOAD_SECONDS

    return int(math.floor(estimate + 0.5))


def status_message(job: Job) -> str:
    if job.status == JobStatus.QUEUED:
        return "Your request is in the processing queue"

    if job.status == JobStatus.PROCESSING:
        if job.progress < 30:
            return "Preparing audio file for processing"
        if job.progress < 70:
            return "Transcribing audio using AI"
        if job.progress < 90:
            return "Generating summary and insights"
        return "Finalizing results"

    if job.status == JobStatus.COMPLETED:
        return "Processing completed successfully"

    return job.error or "Processing failed due to an unknown error"
