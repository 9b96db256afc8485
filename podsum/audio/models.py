"""
Data models shared by the audio stages.

These are the request/response records exchanged with the probe, the
transcription service and the summarization service.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Used when the speech-to-text service returns no per-segment confidence
DEFAULT_TRANSCRIPTION_CONFIDENCE = 0.8


class SourceKind(Enum):
    """Where a job's audio comes from."""

    FILE = "file"
    URL = "url"


class DetailLevel(Enum):
    """How verbose the generated summary should be."""

    BRIEF = "brief"
    STANDARD = "standard"
    DEEP = "deep"


class Importance(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class ProcessingOptions:
    """User-selected options for one job."""

    lang: Optional[str] = None
    detail: DetailLevel = DetailLevel.STANDARD
    timestamps: bool = True

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ProcessingOptions":
        """
        Build options from a loosely typed request payload.

        Missing keys fall back to the defaults: standard detail, timestamps on.

        Raises:
            ValueError: If the detail level is not one of brief/standard/deep
        """
        data = data or {}
        detail = data.get("detail") or DetailLevel.STANDARD.value
        timestamps = data.get("timestamps", True)
        if isinstance(timestamps, str):
            timestamps = timestamps.strip().lower() not in ("false", "0", "no", "off")
        return cls(
            lang=data.get("lang") or None,
            detail=DetailLevel(detail),
            timestamps=bool(timestamps),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"lang": self.lang, "detail": self.detail.value, "timestamps": self.timestamps}


@dataclass(frozen=True)
class AudioMetadata:
    """Format, duration and size of an audio file, derived once per job."""

    format: str
    duration: float
    size: int


@dataclass
class TranscriptSegment:
    """A single segment of transcribed audio with timing and confidence."""

    start: float
    end: float
    text: str
    confidence: Optional[float] = None


@dataclass
class TranscriptionResult:
    """Complete result of the speech-to-text stage."""

    text: str
    language: str
    duration: float
    segments: List[TranscriptSegment] = field(default_factory=list)
    confidence: float = DEFAULT_TRANSCRIPTION_CONFIDENCE

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class KeyPoint:
    title: str
    description: str
    timestamp: Optional[float] = None
    importance: Importance = Importance.MEDIUM

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "timestamp": self.timestamp,
            "importance": self.importance.value,
        }


@dataclass
class Chapter:
    title: str
    start: float
    end: float
    summary: str
    key_points: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SummarizationResult:
    """Structured fields produced by the summarization stage."""

    overview: str = ""
    key_takeaways: List[str] = field(default_factory=list)
    key_points: List[KeyPoint] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)
    quotes: List[str] = field(default_factory=list)
    chapters: List[Chapter] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    confidence: float = 0.7


def calculate_overall_confidence(segments: List[TranscriptSegment]) -> float:
    """
    Average the available segment confidences.

    Segments without a confidence are ignored. When none carry one the
    documented default is returned, never zero.
    """
    confidences = [seg.confidence for seg in segments if seg.confidence is not None]
    if not confidences:
        return DEFAULT_TRANSCRIPTION_CONFIDENCE

    average = sum(confidences) / len(confidences)
    return round(average, 2)
