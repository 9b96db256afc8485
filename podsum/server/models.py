"""
Data models for the podcast processing server.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..audio.models import Chapter, DetailLevel, Importance, KeyPoint, TranscriptSegment

# Re-export job types so callers can import every record from one place
from .job_manager import Job, JobStatus, SubmissionRequest


@dataclass
class Summary:
    """The finished artifact for one successfully processed job."""

    id: str
    owner_id: str
    job_id: str
    title: str
    duration: float
    language: str
    detail_level: DetailLevel

    overview: str
    key_takeaways: List[str]
    key_points: List[KeyPoint]
    action_items: List[str]
    quotes: List[str]

    transcript: str
    timestamps: List[TranscriptSegment]
    chapters: List[Chapter]

    processing_time: float
    word_count: int
    confidence: float
    tags: List[str]

    original_url: Optional[str] = None
    original_filename: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "job_id": self.job_id,
            "title": self.title,
            "description": self.description,
            "original_url": self.original_url,
            "original_filename": self.original_filename,
            "duration": self.duration,
            "language": self.language,
            "detail_level": self.detail_level.value,
            "overview": self.overview,
            "key_takeaways": list(self.key_takeaways),
            "key_points": [p.to_dict() for p in self.key_points],
            "action_items": list(self.action_items),
            "quotes": list(self.quotes),
            "transcript": self.transcript,
            "timestamps": [
                {"start": s.start, "end": s.end, "text": s.text, "confidence": s.confidence} for s in self.timestamps
            ],
            "chapters": [c.to_dict() for c in self.chapters],
            "processing_time": self.processing_time,
            "word_count": self.word_count,
            "confidence": self.confidence,
            "tags": list(self.tags),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Summary":
        return cls(
            id=data["id"],
            owner_id=data["owner_id"],
            job_id=data["job_id"],
            title=data.get("title", ""),
            description=data.get("description"),
            original_url=data.get("original_url"),
            original_filename=data.get("original_filename"),
            duration=float(data.get("duration", 0.0)),
            language=data.get("language", ""),
            detail_level=DetailLevel(data.get("detail_level", DetailLevel.STANDARD.value)),
            overview=data.get("overview", ""),
            key_takeaways=list(data.get("key_takeaways", [])),
            key_points=[
                KeyPoint(
                    title=p.get("title", ""),
                    description=p.get("description", ""),
                    timestamp=p.get("timestamp"),
                    importance=Importance(p.get("importance", "medium")),
                )
                for p in data.get("key_points", [])
            ],
            action_items=list(data.get("action_items", [])),
            quotes=list(data.get("quotes", [])),
            transcript=data.get("transcript", ""),
            timestamps=[TranscriptSegment(**s) for s in data.get("timestamps", [])],
            chapters=[Chapter(**c) for c in data.get("chapters", [])],
            processing_time=float(data.get("processing_time", 0.0)),
            word_count=int(data.get("word_count", 0)),
            confidence=float(data.get("confidence", 0.0)),
            tags=list(data.get("tags", [])),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else datetime.now(),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else datetime.now(),
        )


__all__ = ["Job", "JobStatus", "SubmissionRequest", "Summary"]
