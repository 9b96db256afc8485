"""
Exception hierarchy for the podcast processing pipeline.

Every error raised by a stage is terminal for its job only; the processing
queue records the message on the job and keeps draining.
"""


class PodsumError(Exception):
    """Base class for all pipeline errors."""


class AudioSourceError(PodsumError):
    """The job's audio source could not be resolved to a local file."""


class UnsupportedSourceError(AudioSourceError):
    """The job's source kind cannot be ingested by this deployment."""


class MetadataProbeError(PodsumError):
    """The media-inspection tool failed or its output could not be parsed."""


class NormalizationError(PodsumError):
    """The media tool failed to produce the canonical waveform."""


class TranscriptionError(PodsumError):
    """The speech-to-text service failed."""


class SummarizationError(PodsumError):
    """The summarization service failed or returned a malformed response."""


class JobCancelledError(PodsumError):
    """The job was cancelled while it was being processed."""


class JobAccessError(PodsumError):
    """A caller asked for a job owned by somebody else."""
