"""
Export renderings of a finished Summary: JSON, markdown and plain text.
"""

import json
import re

from ..audio.utils import format_timestamp
from .models import Summary

EXPORT_FORMATS = {
    "json": ("application/json", "json"),
    "markdown": ("text/markdown", "md"),
    "text": ("text/plain", "txt"),
}


def export_filename(summary: Summary, export_format: str) -> str:
    _, extension = EXPORT_FORMATS[export_format]
    return f"{re.sub(r'[^a-zA-Z0-9]', '_', summary.title) or summary.id}.{extension}"


def _minutes(seconds: float) -> int:
    return round(seconds / 60)


def to_json(summary: Summary) -> str:
    return json.dumps(summary.to_dict(), ensure_ascii=False, indent=2)


def to_markdown(summary: Summary) -> str:
    """Heading-style rendering."""
    lines = [f"# {summary.title}", ""]

    if summary.description:
        lines += [summary.description, ""]

    lines += [
        f"**Duration:** {_minutes(summary.duration)} minutes",
        f"**Language:** {summary.language}",
        f"**Detail Level:** {summary.detail_level.value}",
        f"**Created:** {summary.created_at.isoformat()}",
        "",
        "## Overview",
        "",
        summary.overview,
        "",
    ]

    if summary.key_takeaways:
        lines += ["## Key Takeaways", ""]
        lines += [f"{i}. {takeaway}" for i, takeaway in enumerate(summary.key_takeaways, 1)]
        lines.append("")

    if summary.key_points:
        lines += ["## Key Points", ""]
        for point in summary.key_points:
            lines += [f"### {point.title}", "", point.description, ""]

    if summary.action_items:
        lines += ["## Action Items", ""]
        lines += [f"- [ ] {item}" for item in summary.action_items]
        lines.append("")

    if summary.quotes:
        lines += ["## Notable Quotes", ""]
        for quote in summary.quotes:
            lines += [f'> "{quote}"', ""]

    if summary.chapters:
        lines += ["## Chapters", ""]
        for chapter in summary.chapters:
            span = f"{format_timestamp(chapter.start)} - {format_timestamp(chapter.end)}"
            lines += [f"### {chapter.title} ({span})", "", chapter.summary, ""]

    return "\n".join(lines)


def to_text(summary: Summary) -> str:
    """Outline-style rendering."""
    lines = [summary.title, "=" * len(summary.title), ""]

    if summary.description:
        lines += [summary.description, ""]

    lines += [
        f"Duration: {_minutes(summary.duration)} minutes",
        f"Language: {summary.language}",
        f"Detail Level: {summary.detail_level.value}",
        f"Created: {summary.created_at.isoformat()}",
        "",
        "OVERVIEW",
        "--------",
        "",
        summary.overview,
        "",
    ]

    if summary.key_takeaways:
        lines += ["KEY TAKEAWAYS", "-------------", ""]
        lines += [f"{i}. {takeaway}" for i, takeaway in enumerate(summary.key_takeaways, 1)]
        lines.append("")

    if summary.action_items:
        lines += ["ACTION ITEMS", "------------", ""]
        lines += [f"• {item}" for item in summary.action_items]
        lines.append("")

    return "\n".join(lines)


RENDERERS = {"json": to_json, "markdown": to_markdown, "text": to_text}


def render(summary: Summary, export_format: str) -> str:
    """
    Render ``summary`` in ``export_format``.

    Raises:
        ValueError: For formats other than json, markdown and text
    """
    if export_format not in RENDERERS:
        raise ValueError(f"Unsupported export format: {export_format}")
    return RENDERERS[export_format](summary)
