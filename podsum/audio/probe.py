"""
Audio metadata extraction using ffmpeg.

ffmpeg prints the container information of its input to stderr. The only
field we need from that text is the ``Duration: HH:MM:SS.ss`` line, so the
parser is kept narrow and fails loudly instead of handing a zero duration to
the rest of the pipeline.
"""

import logging
import re
import subprocess
from pathlib import Path
from typing import Optional

from ..errors import MetadataProbeError
from .models import AudioMetadata
from .utils import run_media_tool

logger = logging.getLogger(__name__)

DURATION_PATTERN = re.compile(r"Duration:\s*(\d{2,}):(\d{2}):(\d{2}(?:\.\d+)?)")


def parse_duration(output: str) -> Optional[float]:
    """
    Extract the duration in seconds from ffmpeg's diagnostic output.

    Returns:
        Duration in seconds, or None if no ``Duration:`` line is present
        (ffmpeg prints ``Duration: N/A`` for some streams)
    """
    match = DURATION_PATTERN.search(output or "")
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2))
    seconds = float(match.group(3))
    return hours * 3600 + minutes * 60 + seconds


class MetadataProbe:
    """Inspect an audio file with ffmpeg and return its AudioMetadata."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout: float = 60):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout

    def probe(self, file_path: str) -> AudioMetadata:
        """
        Read format, duration and size of ``file_path``.

        Raises:
            MetadataProbeError: If the file is missing, ffmpeg cannot be run,
                or its output carries no parsable duration
        """
        path = Path(file_path)
        if not path.exists():
            raise MetadataProbeError(f"Unable to read audio metadata: {path.name} does not exist")

        args = [self.ffmpeg_path, "-hide_banner", "-i", str(path), "-f", "ffmetadata", "-"]
        try:
            result = run_media_tool(args, timeout=self.timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise MetadataProbeError(f"Unable to read audio metadata: {e}")

        duration = parse_duration(result.stderr)
        if duration is None:
            logger.warning(f"No duration found in ffmpeg output for {path.name}")
            raise MetadataProbeError("Unable to read audio metadata: duration not found in probe output")

        metadata = AudioMetadata(
            format=path.suffix.lower().lstrip("."),
            duration=duration,
            size=path.stat().st_size,
        )
        logger.info(f"Probed {path.name}: {metadata.format}, {metadata.duration:.2f}s, {metadata.size} bytes")
        return metadata
