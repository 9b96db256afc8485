"""
Podcast processing pipeline.

This module contains the logic for driving one job through the stages:
acquisition, metadata probe, normalization, transcription, summarization and
result assembly. The stage clients are constructed once at start-up and
injected here.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import Optional

from ..audio.acquisition import AudioAcquirer
from ..audio.models import AudioMetadata
from ..audio.normalizer import AudioNormalizer
from ..audio.probe import MetadataProbe
from ..audio.summarizer import PodcastSummarizer
from ..audio.transcription import Transcriber
from ..errors import JobCancelledError
from .assembler import ResultAssembler
from .instrumentation import run_stage
from .job_manager import Job, JobManager

logger = logging.getLogger(__name__)

# Progress written at the end of each stage
PROGRESS_FILE_ACQUIRED = 10
PROGRESS_URL_ACQUIRED = 20
PROGRESS_PROBED = 30
PROGRESS_NORMALIZED = 50
PROGRESS_TRANSCRIBED = 70
PROGRESS_SUMMARIZED = 90


class PodcastProcessor:
    """Handles the actual processing of one job at a time."""

    def __init__(
        self,
        job_manager: JobManager,
        acquirer: AudioAcquirer,
        probe: MetadataProbe,
        normalizer: AudioNormalizer,
        transcriber: Transcriber,
        summarizer: PodcastSummarizer,
        assembler: ResultAssembler,
        work_dir: str = "server_jobs",
    ):
        """
        Initialize the processor.

        Args:
            job_manager: JobManager instance for state management
            acquirer: Resolves job sources to local files
            probe: Reads audio metadata
            normalizer: Produces the canonical waveform
            transcriber: Speech-to-text client
            summarizer: Summarization client
            assembler: Builds and stores the final Summary
            work_dir: Parent directory of the per-job workspaces
        """
        self.job_manager = job_manager
        self.acquirer = acquirer
        self.probe = probe
        self.normalizer = normalizer
        self.transcriber = transcriber
        self.summarizer = summarizer
        self.assembler = assembler
        self.work_dir = Path(work_dir)

    def workspace_for(self, job_id: str) -> Path:
        return self.work_dir / job_id

    def process_job(self, job: Job) -> bool:
        """
        Process a claimed job through all stages.

        Never raises: any stage failure is recorded on the job so the queue
        can move on. The job workspace and the stored upload are removed on
        every path.

        Returns:
            True if the job completed
        """
        start_time = time.time()
        workspace = self.workspace_for(job.id)

        try:
            logger.info(f"Starting processing for job {job.id}")
            summary_id = self._run_stages(job, workspace)
        except JobCancelledError:
            logger.info(f"Job {job.id} was cancelled during processing, result discarded")
            return False
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(f"Processing failed for job {job.id}: {message}")
            self.job_manager.fail_job(job.id, message)
            return False
        finally:
            self._cleanup_workspace(workspace)
            self.release_source(job)

        if not self.job_manager.complete_job(job.id, summary_id):
            # Cancelled after the last boundary check; the summary is already stored
            logger.warning(f"Job {job.id} was cancelled after summary {summary_id} was stored")
            return False

        processing_time = time.time() - start_time
        logger.info(f"Job {job.id} completed in {processing_time:.2f} seconds")
        return True

    def _run_stages(self, job: Job, workspace: Path) -> str:
        workspace.mkdir(parents=True, exist_ok=True)

        # Stage 1: Acquisition
        acquired = run_stage(
            job.id, "acquisition", self.acquirer.acquire, job.source_kind, job.source_reference, workspace
        ).unwrap()
        acquired_progress = PROGRESS_URL_ACQUIRED if acquired.temporary else PROGRESS_FILE_ACQUIRED
        self._advance(job.id, acquired_progress)

        # Stage 2: Metadata probe
        metadata: AudioMetadata = run_stage(job.id, "probe", self.probe.probe, str(acquired.path)).unwrap()
        self._advance(job.id, PROGRESS_PROBED)

        # Stage 3: Normalization (soft-degrades to the original file)
        audio_path: Path = run_stage(
            job.id, "normalize", self.normalizer.normalize_or_original, str(acquired.path), str(workspace)
        ).unwrap()
        self._advance(job.id, PROGRESS_NORMALIZED)

        # Stage 4: Transcription
        transcription = run_stage(
            job.id,
            "transcription",
            self.transcriber.transcribe,
            audio_path.read_bytes(),
            language=job.options.lang,
            filename=audio_path.name,
        ).unwrap()
        if not transcription.duration:
            transcription.duration = metadata.duration
        self._advance(job.id, PROGRESS_TRANSCRIBED)

        # Stage 5: Summarization
        summarization = run_stage(
            job.id,
            "summarization",
            self.summarizer.summarize,
            transcription.text,
            job.options.detail,
            job.options,
            metadata={
                "title": job.original_filename,
                "duration": transcription.duration,
                "language": transcription.language,
            },
        ).unwrap()
        self._advance(job.id, PROGRESS_SUMMARIZED)

        # Stage 6: Assembly and hand-off
        # Processing time counts from submission, queue wait included
        summary = run_stage(job.id, "assembly", self.assembler.assemble, job, transcription, summarization).unwrap()
        self._check_cancelled(job.id)
        return run_stage(job.id, "storage", self.assembler.deliver, summary).unwrap()

    def _check_cancelled(self, job_id: str) -> None:
        if self.job_manager.is_cancelled(job_id):
            raise JobCancelledError(f"Job {job_id} was cancelled")

    def _advance(self, job_id: str, progress: int) -> None:
        """Record progress at a stage boundary, stopping if the job was cancelled."""
        self._check_cancelled(job_id)
        self.job_manager.update_job(job_id, progress=progress)

    def _cleanup_workspace(self, workspace: Path) -> None:
        if not workspace.exists():
            return
        try:
            shutil.rmtree(workspace)
            logger.debug(f"Removed workspace {workspace}")
        except OSError as e:
            logger.warning(f"Failed to delete workspace {workspace}: {e}")

    def release_source(self, job: Job) -> None:
        """Delete the job's stored upload; the job will never read it again."""
        self.acquirer.release(job.source_kind, job.source_reference)


def build_processor(
    job_manager: JobManager,
    transcriber: Transcriber,
    summarizer: PodcastSummarizer,
    assembler: ResultAssembler,
    upload_dir: str = "uploads",
    work_dir: str = "server_jobs",
    ffmpeg_path: str = "ffmpeg",
    normalize_loudness: bool = True,
    acquirer: Optional[AudioAcquirer] = None,
) -> PodcastProcessor:
    """Wire a processor with ffmpeg-backed probe and normalizer."""
    return PodcastProcessor(
        job_manager=job_manager,
        acquirer=acquirer or AudioAcquirer(upload_dir),
        probe=MetadataProbe(ffmpeg_path),
        normalizer=AudioNormalizer(ffmpeg_path, loudness=normalize_loudness),
        transcriber=transcriber,
        summarizer=summarizer,
        assembler=assembler,
        work_dir=work_dir,
    )
