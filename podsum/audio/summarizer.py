"""
Podcast summarization functionality using OpenAI API.

This module turns a transcript into structured summary fields using OpenAI's
chat models with a JSON-object response format.

Key features:
- Lazy loading of OpenAI client to avoid initialization during import
- Detail-level policy (brief/standard/deep) fixing target list sizes
- Strict validation of the returned JSON with pydantic
- Confidence derived from the completion's finish reason

Important: a malformed response is a stage failure. Missing fields default to
empty values, but a response that is not a JSON object of the expected shape
is never coerced into a result.
"""

import json
import logging
import math
from typing import Any, Dict, List, Optional

import pydantic

from ..errors import SummarizationError
from .models import (
    Chapter,
    DetailLevel,
    Importance,
    KeyPoint,
    ProcessingOptions,
    SummarizationResult,
)

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_TOKENS = 32000

FINISH_REASON_CONFIDENCE = {"stop": 0.95, "length": 0.8}
DEFAULT_SUMMARY_CONFIDENCE = 0.7

DETAIL_INSTRUCTIONS = {
    DetailLevel.BRIEF: (
        "Keep the summary concise and focused on the most important points. "
        "Limit keyTakeaways to 3-5 items, keyPoints to 5-8 items, and actionItems to 3-5 items."
    ),
    DetailLevel.STANDARD: (
        "Provide a balanced summary with good coverage of the content. "
        "Include 5-7 keyTakeaways, 8-12 keyPoints, and 5-8 actionItems."
    ),
    DetailLevel.DEEP: (
        "Create a comprehensive, detailed summary. "
        "Include 7-10 keyTakeaways, 12-20 keyPoints, 8-12 actionItems, and detailed chapter breakdowns."
    ),
}

RESPONSE_FORMAT = """Response format: Return a valid JSON object with the following structure:
{
  "overview": "A comprehensive overview of the podcast content",
  "keyTakeaways": ["Array of main takeaways"],
  "keyPoints": [{"title": "Point title", "description": "Detailed description", "importance": "high|medium|low", "timestamp": 123}],
  "actionItems": ["Array of actionable items listeners can implement"],
  "quotes": ["Array of notable quotes from the podcast"],
  "chapters": [{"title": "Chapter title", "start": 0, "end": 300, "summary": "Chapter summary", "keyPoints": ["key point 1"]}],
  "tags": ["Array of relevant tags/topics"]
}"""


class KeyPointPayload(pydantic.BaseModel):
    title: str = ""
    description: str = ""
    timestamp: Optional[float] = None
    importance: Importance = Importance.MEDIUM

    @pydantic.field_validator("title", "description", mode="before")
    @classmethod
    def _null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @pydantic.field_validator("importance", mode="before")
    @classmethod
    def _default_importance(cls, value: Any) -> Any:
        if value is None or value == "":
            return Importance.MEDIUM
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ChapterPayload(pydantic.BaseModel):
    title: str = ""
    start: float = 0.0
    end: float = 0.0
    summary: str = ""
    key_points: List[str] = pydantic.Field(default_factory=list, alias="keyPoints")

    model_config = pydantic.ConfigDict(populate_by_name=True)

    @pydantic.field_validator("title", "start", "end", "summary", "key_points", mode="before")
    @classmethod
    def _null_is_missing(cls, value: Any, info: pydantic.ValidationInfo) -> Any:
        if value is not None:
            return value
        if info.field_name in ("start", "end"):
            return 0.0
        return [] if info.field_name == "key_points" else ""


class SummaryPayload(pydantic.BaseModel):
    """The JSON object the language model must return."""

    overview: str = ""
    key_takeaways: List[str] = pydantic.Field(default_factory=list, alias="keyTakeaways")
    key_points: List[KeyPointPayload] = pydantic.Field(default_factory=list, alias="keyPoints")
    action_items: List[str] = pydantic.Field(default_factory=list, alias="actionItems")
    quotes: List[str] = pydantic.Field(default_factory=list)
    chapters: List[ChapterPayload] = pydantic.Field(default_factory=list)
    tags: List[str] = pydantic.Field(default_factory=list)

    model_config = pydantic.ConfigDict(populate_by_name=True)

    @pydantic.field_validator(
        "overview", "key_takeaways", "key_points", "action_items", "quotes", "chapters", "tags", mode="before"
    )
    @classmethod
    def _null_is_missing(cls, value: Any, info: pydantic.ValidationInfo) -> Any:
        # Models sometimes emit explicit nulls for sections they have nothing for
        if value is None:
            return "" if info.field_name == "overview" else []
        return value


def estimate_token_count(text: str) -> int:
    """Rough estimation: 1 token is about 4 characters of English."""
    return math.ceil(len(text) / 4)


def validate_token_limits(transcript: str) -> Dict[str, Any]:
    estimated = estimate_token_count(transcript)
    return {"valid": estimated < MAX_TRANSCRIPT_TOKENS, "estimated_tokens": estimated, "max_tokens": MAX_TRANSCRIPT_TOKENS}


def summary_confidence(finish_reason: Optional[str]) -> float:
    """Confidence from how the completion ended, not from its content."""
    return FINISH_REASON_CONFIDENCE.get(finish_reason or "", DEFAULT_SUMMARY_CONFIDENCE)


def build_system_prompt(detail_level: DetailLevel, options: ProcessingOptions) -> str:
    prompt = (
        "You are an expert podcast summarizer. Your task is to analyze podcast transcripts "
        "and create comprehensive, actionable summaries.\n\n"
        f"{RESPONSE_FORMAT}\n\n"
        f"Detail Level: {detail_level.value.upper()}\n{DETAIL_INSTRUCTIONS[detail_level]}"
    )

    if options.timestamps:
        prompt += (
            "\n\nInclude timestamp information where available. Use the timestamp data to create "
            "meaningful chapters and link key points to specific moments in the podcast."
        )
    else:
        prompt += "\n\nDo not produce chapters; return an empty chapters array."

    if options.lang and options.lang != "en":
        prompt += (
            f"\n\nThe podcast language is {options.lang}. "
            "Ensure your summary captures cultural context and language-specific nuances."
        )

    return prompt


def build_user_prompt(transcript: str, metadata: Optional[Dict[str, Any]] = None) -> str:
    metadata = metadata or {}
    prompt = "Please analyze the following podcast transcript and create a summary:\n\n"

    if metadata.get("title"):
        prompt += f"Podcast Title: {metadata['title']}\n"
    if metadata.get("duration"):
        prompt += f"Duration: {round(metadata['duration'] / 60)} minutes\n"
    if metadata.get("language"):
        prompt += f"Language: {metadata['language']}\n"

    prompt += f"\nTranscript:\n{transcript}"
    return prompt


def parse_summary_content(content: Optional[str]) -> SummaryPayload:
    """
    Validate the raw completion text.

    Raises:
        SummarizationError: If the content is empty, not JSON, or not the expected object
    """
    if not content or not content.strip():
        raise SummarizationError("Summarization failed: no response content from the model")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise SummarizationError(f"Summarization failed: invalid JSON response ({e.msg})") from e

    if not isinstance(data, dict):
        raise SummarizationError("Summarization failed: response is not a JSON object")

    try:
        return SummaryPayload.model_validate(data)
    except pydantic.ValidationError as e:
        raise SummarizationError(f"Summarization failed: malformed response ({e.error_count()} errors)") from e


class PodcastSummarizer:
    """
    Handle podcast summarization using OpenAI API.

    Generates structured summaries from transcripts. Uses lazy loading to
    avoid unnecessary API initialization.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4-turbo-preview",
        max_tokens: int = 4000,
        temperature: float = 0.3,
        client: Optional[Any] = None,
    ):
        """
        Initialize summarizer with OpenAI API key.

        Args:
            api_key: OpenAI API authentication key
            model: Chat model to use
            max_tokens: Completion token budget
            temperature: Sampling temperature
            client: Pre-built OpenAI client (injected in tests)
        """
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = client

    def _load_client(self):
        if self.client is not None:
            return

        if not self.api_key:
            raise SummarizationError("Summarization failed: OPENAI_API_KEY is not configured")

        from openai import OpenAI

        self.client = OpenAI(api_key=self.api_key)
        logger.info(f"OpenAI summarization client loaded (model: {self.model})")

    def summarize(
        self,
        transcript: str,
        detail_level: DetailLevel,
        options: ProcessingOptions,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SummarizationResult:
        """
        Generate a structured summary from transcript text.

        Args:
            transcript: Full transcript text
            detail_level: Target verbosity
            options: Job options (language hint, timestamps flag)
            metadata: Optional title, duration (seconds) and language

        Returns:
            SummarizationResult; chapters are empty unless timestamps were requested

        Raises:
            SummarizationError: On service failure or a malformed response (no retry)
        """
        if not transcript or not transcript.strip():
            raise SummarizationError("Summarization failed: transcript is empty")

        self._load_client()

        limits = validate_token_limits(transcript)
        if not limits["valid"]:
            logger.warning(
                f"Transcript is about {limits['estimated_tokens']} tokens, above the {limits['max_tokens']} guideline"
            )

        logger.info(
            f"Starting summarization: {len(transcript)} chars, detail={detail_level.value}, "
            f"language={options.lang or 'auto'}, timestamps={options.timestamps}"
        )

        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": build_system_prompt(detail_level, options)},
                    {"role": "user", "content": build_user_prompt(transcript, metadata)},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except Exception as e:
            logger.error(f"Summarization request failed: {e}")
            raise SummarizationError(f"Summarization failed: {e}") from e

        if not completion.choices:
            raise SummarizationError("Summarization failed: no choices in response")

        choice = completion.choices[0]
        payload = parse_summary_content(choice.message.content if choice.message else None)
        result = self._to_result(payload, options, summary_confidence(choice.finish_reason))

        usage = getattr(completion, "usage", None)
        logger.info(
            f"Summarization completed: {len(result.key_takeaways)} takeaways, {len(result.key_points)} points, "
            f"{len(result.action_items)} actions, {len(result.chapters)} chapters, "
            f"confidence {result.confidence}, tokens {getattr(usage, 'total_tokens', 'n/a')}"
        )
        return result

    @staticmethod
    def _to_result(payload: SummaryPayload, options: ProcessingOptions, confidence: float) -> SummarizationResult:
        chapters: List[Chapter] = []
        if options.timestamps:
            chapters = [
                Chapter(title=c.title, start=c.start, end=c.end, summary=c.summary, key_points=list(c.key_points))
                for c in payload.chapters
            ]

        return SummarizationResult(
            overview=payload.overview,
            key_takeaways=list(payload.key_takeaways),
            key_points=[
                KeyPoint(title=p.title, description=p.description, timestamp=p.timestamp, importance=p.importance)
                for p in payload.key_points
            ],
            action_items=list(payload.action_items),
            quotes=list(payload.quotes),
            chapters=chapters,
            tags=list(payload.tags),
            confidence=confidence,
        )
