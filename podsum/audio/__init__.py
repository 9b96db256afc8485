"""
Audio stages of the podcast summarization pipeline.

This package turns a job's audio source into a transcript and a structured
summary. Every stage wraps an external tool or service behind a narrow
interface so the pipeline can be driven with fakes in tests.

Main components:
- AudioAcquirer: Resolves uploaded files and (optionally) downloads URLs
- MetadataProbe: Reads format, duration and size with ffmpeg
- AudioNormalizer: Transcodes to 16 kHz mono WAV with loudness normalization
- OpenAITranscriber / WhisperTranscriber: Speech-to-text
- PodcastSummarizer: Structured summaries from an OpenAI chat model

Example usage:
    from podsum.audio import OpenAITranscriber, PodcastSummarizer, ProcessingOptions

    transcriber = OpenAITranscriber(api_key=key)
    transcript = transcriber.transcribe(audio_bytes, language="en")

    summarizer = PodcastSummarizer(api_key=key)
    options = ProcessingOptions()
    summary = summarizer.summarize(transcript.text, options.detail, options)
"""

from .acquisition import AcquiredAudio, AudioAcquirer, HttpAudioFetcher
from .models import (
    AudioMetadata,
    Chapter,
    DetailLevel,
    KeyPoint,
    ProcessingOptions,
    SourceKind,
    SummarizationResult,
    TranscriptionResult,
    TranscriptSegment,
)
from .normalizer import AudioNormalizer
from .probe import MetadataProbe, parse_duration
from .summarizer import PodcastSummarizer
from .transcription import OpenAITranscriber, Transcriber, WhisperTranscriber
from .utils import format_timestamp

__all__ = [
    "AcquiredAudio",
    "AudioAcquirer",
    "HttpAudioFetcher",
    "AudioMetadata",
    "Chapter",
    "DetailLevel",
    "KeyPoint",
    "ProcessingOptions",
    "SourceKind",
    "SummarizationResult",
    "TranscriptionResult",
    "TranscriptSegment",
    "AudioNormalizer",
    "MetadataProbe",
    "parse_duration",
    "PodcastSummarizer",
    "OpenAITranscriber",
    "Transcriber",
    "WhisperTranscriber",
    "format_timestamp",
]
