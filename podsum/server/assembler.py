"""
Result assembly: merge stage outputs into the final Summary and hand it off.
"""

import logging
import time
from typing import Optional

from ..audio.models import SummarizationResult, TranscriptionResult
from .job_manager import Job, generate_id
from .models import Summary
from .storage import SummaryStore

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 60
ELLIPSIS = "..."


def generate_title(overview: str) -> str:
    """
    Title from the first sentence of the overview.

    Sentences longer than 60 characters are cut to 57 plus an ellipsis. An
    overview with no full stop at all also gets the ellipsis, since the text
    is not a finished sentence.
    """
    first_sentence = overview.split(".")[0].strip()
    if len(first_sentence) > MAX_TITLE_LENGTH:
        return first_sentence[: MAX_TITLE_LENGTH - len(ELLIPSIS)] + ELLIPSIS
    if "." not in overview:
        return first_sentence + ELLIPSIS
    return first_sentence


def count_words(text: str) -> int:
    return len(text.split())


class ResultAssembler:
    """Builds the Summary for a completed job and delivers it to storage."""

    def __init__(self, store: SummaryStore):
        self.store = store

    def assemble(
        self,
        job: Job,
        transcription: TranscriptionResult,
        summarization: SummarizationResult,
        started_at: Optional[float] = None,
    ) -> Summary:
        """
        Combine transcription, summarization and job bookkeeping.

        Args:
            job: The job being completed
            transcription: Output of the transcription stage
            summarization: Output of the summarization stage
            started_at: ``time.time()`` when processing began; defaults to job creation

        Returns:
            The Summary, not yet stored
        """
        if started_at is None:
            started_at = job.created_at.timestamp()
        processing_time_ms = round((time.time() - started_at) * 1000)

        # Chapters only exist when timestamps were requested
        chapters = list(summarization.chapters) if job.options.timestamps else []

        return Summary(
            id=generate_id("summary"),
            owner_id=job.owner_id,
            job_id=job.id,
            title=generate_title(summarization.overview),
            original_url=job.url,
            original_filename=job.original_filename,
            duration=transcription.duration,
            language=transcription.language,
            detail_level=job.options.detail,
            overview=summarization.overview,
            key_takeaways=list(summarization.key_takeaways),
            key_points=list(summarization.key_points),
            action_items=list(summarization.action_items),
            quotes=list(summarization.quotes),
            transcript=transcription.text,
            timestamps=list(transcription.segments),
            chapters=chapters,
            processing_time=processing_time_ms,
            word_count=count_words(transcription.text),
            confidence=min(transcription.confidence, summarization.confidence),
            tags=list(summarization.tags),
        )

    def deliver(self, summary: Summary) -> str:
        """Hand the summary to the store and return its id."""
        self.store.save(summary)
        logger.info(
            f"Summary {summary.id} delivered for job {summary.job_id}: "
            f"{summary.word_count} words, confidence {summary.confidence}"
        )
        return summary.id
