"""
Shared fakes and fixtures.

The stage clients are replaced by in-process fakes so the pipeline can be
driven without ffmpeg, network access or API keys.
"""

import copy
from pathlib import Path
from types import SimpleNamespace

import pytest

from podsum.audio.acquisition import AudioAcquirer
from podsum.audio.models import (
    AudioMetadata,
    Chapter,
    Importance,
    KeyPoint,
    ProcessingOptions,
    SourceKind,
    SummarizationResult,
    TranscriptionResult,
    TranscriptSegment,
)
from podsum.audio.normalizer import AudioNormalizer
from podsum.errors import MetadataProbeError, NormalizationError
from podsum.server.assembler import ResultAssembler
from podsum.server.job_manager import JobManager, SubmissionRequest
from podsum.server.processing_queue import ProcessingQueue
from podsum.server.processor import PodcastProcessor
from podsum.server.storage import InMemorySummaryStore


def make_transcription(**overrides) -> TranscriptionResult:
    data = dict(
        text="Welcome to the show. Today we talk about sleep and focus.",
        language="en",
        duration=754.0,
        segments=[
            TranscriptSegment(start=0.0, end=4.2, text="Welcome to the show.", confidence=0.92),
            TranscriptSegment(start=4.2, end=9.8, text="Today we talk about sleep and focus.", confidence=0.88),
        ],
        confidence=0.9,
    )
    data.update(overrides)
    return TranscriptionResult(**data)


def make_summarization(**overrides) -> SummarizationResult:
    data = dict(
        overview="A conversation about sleep and focus. The host shares routines.",
        key_takeaways=["Sleep matters", "Routines help"],
        key_points=[KeyPoint(title="Sleep", description="Aim for eight hours", timestamp=12.0, importance=Importance.HIGH)],
        action_items=["Set a bedtime"],
        quotes=["Rest is productive"],
        chapters=[Chapter(title="Intro", start=0.0, end=60.0, summary="Opening remarks", key_points=["hello"])],
        tags=["sleep", "focus"],
        confidence=0.95,
    )
    data.update(overrides)
    return SummarizationResult(**data)


class FakeTranscriber:
    def __init__(self, result=None, error=None, on_call=None):
        self.result = result or make_transcription()
        self.error = error
        self.on_call = on_call
        self.calls = []

    def transcribe(self, audio, language=None, prompt=None, filename="audio.wav"):
        self.calls.append({"audio": audio, "language": language, "prompt": prompt, "filename": filename})
        if self.on_call:
            self.on_call()
        if self.error:
            raise self.error
        return copy.deepcopy(self.result)


class FakeSummarizer:
    def __init__(self, result=None, error=None):
        self.result = result or make_summarization()
        self.error = error
        self.calls = []

    def summarize(self, transcript, detail_level, options, metadata=None):
        self.calls.append({"transcript": transcript, "detail_level": detail_level, "options": options, "metadata": metadata})
        if self.error:
            raise self.error
        return copy.deepcopy(self.result)


class FakeProbe:
    """Returns fixed metadata; fails for files whose name contains 'corrupt'."""

    def __init__(self):
        self.calls = []

    def probe(self, file_path):
        self.calls.append(file_path)
        if "corrupt" in Path(file_path).name:
            raise MetadataProbeError("Unable to read audio metadata: duration not found in probe output")
        return AudioMetadata(format=Path(file_path).suffix.lstrip("."), duration=754.0, size=Path(file_path).stat().st_size)


class FakeNormalizer(AudioNormalizer):
    """Writes a small WAV stand-in into the workspace, or fails like ffmpeg would."""

    def __init__(self, fail=False):
        super().__init__(ffmpeg_path="ffmpeg")
        self.fail = fail
        self.outputs = []

    def normalize(self, input_path, output_dir):
        if self.fail:
            raise NormalizationError("ffmpeg failed (rc=1): Invalid data found when processing input")
        output_path = Path(output_dir) / "normalized.wav"
        output_path.write_bytes(b"RIFF-normalized")
        self.outputs.append(output_path)
        return output_path


class RecordingJobManager(JobManager):
    """JobManager that remembers every progress value it accepted."""

    def __init__(self):
        super().__init__()
        self.progress_log = {}

    def update_job(self, job_id, **updates):
        applied = super().update_job(job_id, **updates)
        if applied and "progress" in updates:
            self.progress_log.setdefault(job_id, []).append(self.get_job(job_id).progress)
        return applied


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def pipeline(tmp_path, upload_dir):
    """A fully wired single-worker pipeline with fake stage clients."""
    job_manager = RecordingJobManager()
    store = InMemorySummaryStore()
    transcriber = FakeTranscriber()
    summarizer = FakeSummarizer()
    normalizer = FakeNormalizer()
    probe = FakeProbe()
    processor = PodcastProcessor(
        job_manager=job_manager,
        acquirer=AudioAcquirer(str(upload_dir)),
        probe=probe,
        normalizer=normalizer,
        transcriber=transcriber,
        summarizer=summarizer,
        assembler=ResultAssembler(store),
        work_dir=str(tmp_path / "work"),
    )
    queue = ProcessingQueue(job_manager, processor, queue_check_interval=0.05)
    return SimpleNamespace(
        job_manager=job_manager,
        store=store,
        transcriber=transcriber,
        summarizer=summarizer,
        normalizer=normalizer,
        probe=probe,
        processor=processor,
        queue=queue,
        upload_dir=upload_dir,
        work_dir=tmp_path / "work",
    )


def submit_file(job_manager, upload_dir, name="episode.mp3", owner="alice", options=None):
    path = Path(upload_dir) / name
    path.write_bytes(b"ID3-original-audio")
    request = SubmissionRequest(
        type=SourceKind.FILE,
        file_path=str(path),
        original_filename=name,
        options=options or ProcessingOptions(),
    )
    return job_manager.create_job(owner, request)


def submit_url(job_manager, url="https://example.com/episode.mp3", owner="alice", options=None):
    request = SubmissionRequest(type=SourceKind.URL, url=url, options=options or ProcessingOptions())
    return job_manager.create_job(owner, request)
