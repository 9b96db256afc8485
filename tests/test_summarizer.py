"""
Tests for the summarization client and response validation.
"""

import json
from types import SimpleNamespace

import pytest

from podsum.audio.models import DetailLevel, Importance, ProcessingOptions
from podsum.audio.summarizer import (
    PodcastSummarizer,
    build_system_prompt,
    build_user_prompt,
    estimate_token_count,
    parse_summary_content,
    summary_confidence,
    validate_token_limits,
)
from podsum.errors import SummarizationError

FULL_RESPONSE = {
    "overview": "Two founders discuss hiring. They share what worked.",
    "keyTakeaways": ["Hire slowly"],
    "keyPoints": [
        {"title": "Culture", "description": "Write values down", "importance": "HIGH", "timestamp": 95},
        {"title": "Pace", "description": "Do not rush offers"},
    ],
    "actionItems": ["Draft a values doc"],
    "quotes": ["Culture is what you tolerate"],
    "chapters": [{"title": "Intro", "start": 0, "end": 120, "summary": "Guests introduced", "keyPoints": ["names"]}],
    "tags": ["hiring", "startups"],
}


class StubCompletions:
    def __init__(self, content=None, finish_reason="stop", error=None, choices=None):
        self.content = content
        self.finish_reason = finish_reason
        self.error = error
        self.choices = choices
        self.requests = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error:
            raise self.error
        choices = self.choices
        if choices is None:
            message = SimpleNamespace(content=self.content)
            choices = [SimpleNamespace(message=message, finish_reason=self.finish_reason)]
        return SimpleNamespace(choices=choices, usage=SimpleNamespace(total_tokens=1234))


def _summarizer(completions):
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return PodcastSummarizer(api_key="", client=client)


def test_summarize_maps_response_fields():
    completions = StubCompletions(json.dumps(FULL_RESPONSE))

    result = _summarizer(completions).summarize("A transcript.", DetailLevel.STANDARD, ProcessingOptions())

    assert result.overview.startswith("Two founders")
    assert result.key_takeaways == ["Hire slowly"]
    assert result.key_points[0].importance == Importance.HIGH
    assert result.key_points[0].timestamp == 95
    assert result.key_points[1].importance == Importance.MEDIUM
    assert result.chapters[0].key_points == ["names"]
    assert result.tags == ["hiring", "startups"]
    assert result.confidence == 0.95

    request = completions.requests[0]
    assert request["model"] == "gpt-4-turbo-preview"
    assert request["response_format"] == {"type": "json_object"}
    assert request["messages"][0]["role"] == "system"


def test_missing_fields_default_to_empty():
    completions = StubCompletions(json.dumps({"overview": "Short.", "quotes": None}))

    result = _summarizer(completions).summarize("A transcript.", DetailLevel.BRIEF, ProcessingOptions())

    assert result.overview == "Short."
    assert result.key_takeaways == []
    assert result.key_points == []
    assert result.quotes == []
    assert result.chapters == []


def test_timestamps_off_drops_chapters():
    completions = StubCompletions(json.dumps(FULL_RESPONSE))
    options = ProcessingOptions(detail=DetailLevel.BRIEF, timestamps=False)

    result = _summarizer(completions).summarize("A transcript.", DetailLevel.BRIEF, options)

    assert result.chapters == []
    assert "Do not produce chapters" in completions.requests[0]["messages"][0]["content"]


@pytest.mark.parametrize("finish_reason, expected", [("stop", 0.95), ("length", 0.8), ("content_filter", 0.7), (None, 0.7)])
def test_confidence_from_finish_reason(finish_reason, expected):
    assert summary_confidence(finish_reason) == expected


@pytest.mark.parametrize(
    "content",
    [
        None,
        "   ",
        "Here is your summary: overview...",
        "[1, 2, 3]",
        json.dumps({"keyTakeaways": "not a list"}),
        json.dumps({"keyPoints": [{"importance": "urgent"}]}),
    ],
)
def test_malformed_content_is_rejected(content):
    with pytest.raises(SummarizationError):
        parse_summary_content(content)


def test_nested_nulls_default_to_empty():
    content = json.dumps(
        {
            "overview": "Ok.",
            "keyPoints": [{"title": None, "description": "d", "importance": "high", "timestamp": None}],
            "chapters": [{"title": "Intro", "start": None, "end": None, "summary": None, "keyPoints": None}],
        }
    )

    payload = parse_summary_content(content)

    point = payload.key_points[0]
    assert point.title == ""
    assert point.importance == Importance.HIGH
    assert point.timestamp is None
    chapter = payload.chapters[0]
    assert (chapter.start, chapter.end, chapter.summary, chapter.key_points) == (0.0, 0.0, "", [])


@pytest.mark.parametrize(
    "bad_point",
    [{"title": "t", "importance": "critical"}, {"title": "t", "timestamp": "around ten minutes"}],
)
def test_nested_wrong_types_still_rejected(bad_point):
    with pytest.raises(SummarizationError):
        parse_summary_content(json.dumps({"overview": "Ok.", "keyPoints": [bad_point]}))


def test_malformed_response_fails_summarize():
    completions = StubCompletions("not json", finish_reason="stop")

    with pytest.raises(SummarizationError, match="invalid JSON"):
        _summarizer(completions).summarize("A transcript.", DetailLevel.STANDARD, ProcessingOptions())


def test_no_choices_fails():
    completions = StubCompletions(choices=[])

    with pytest.raises(SummarizationError, match="no choices"):
        _summarizer(completions).summarize("A transcript.", DetailLevel.STANDARD, ProcessingOptions())


def test_service_error_is_wrapped():
    completions = StubCompletions(error=RuntimeError("503 Service Unavailable"))

    with pytest.raises(SummarizationError, match="503"):
        _summarizer(completions).summarize("A transcript.", DetailLevel.STANDARD, ProcessingOptions())


def test_empty_transcript_is_rejected_before_calling():
    completions = StubCompletions(json.dumps(FULL_RESPONSE))

    with pytest.raises(SummarizationError, match="empty"):
        _summarizer(completions).summarize("  ", DetailLevel.STANDARD, ProcessingOptions())
    assert completions.requests == []


def test_system_prompt_reflects_detail_and_language():
    prompt = build_system_prompt(DetailLevel.DEEP, ProcessingOptions(lang="es", timestamps=True))

    assert "Detail Level: DEEP" in prompt
    assert "7-10 keyTakeaways" in prompt
    assert "meaningful chapters" in prompt
    assert "The podcast language is es" in prompt
    assert "language is" not in build_system_prompt(DetailLevel.BRIEF, ProcessingOptions(lang="en"))


def test_user_prompt_includes_metadata():
    prompt = build_user_prompt("Hello.", {"title": "ep1.mp3", "duration": 754.0, "language": "en"})

    assert "Podcast Title: ep1.mp3" in prompt
    assert "Duration: 13 minutes" in prompt
    assert prompt.endswith("Transcript:\nHello.")


def test_token_estimates():
    assert estimate_token_count("abcd" * 10) == 10
    assert estimate_token_count("abcde") == 2
    assert validate_token_limits("a" * 8)["valid"] is True
    assert validate_token_limits("a" * 128000)["valid"] is False
