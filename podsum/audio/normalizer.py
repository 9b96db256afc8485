"""
Audio normalization using ffmpeg.

Target: mono, 16 kHz, 16-bit PCM WAV, optionally passed through the
``loudnorm`` filter. This is the input the transcription service expects.
"""

import logging
import subprocess
from pathlib import Path

from ..errors import NormalizationError
from .utils import run_media_tool

logger = logging.getLogger(__name__)

NORM_SAMPLE_RATE = 16000
NORM_CHANNELS = 1
NORM_CODEC = "pcm_s16le"


class AudioNormalizer:
    """Transcode audio to the canonical waveform used for transcription."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", loudness: bool = True, timeout: float = 600):
        """
        Args:
            ffmpeg_path: ffmpeg executable
            loudness: Apply EBU R128 loudness normalization
            timeout: Seconds before the ffmpeg run is abandoned
        """
        self.ffmpeg_path = ffmpeg_path
        self.loudness = loudness
        self.timeout = timeout

    def build_command(self, input_path: Path, output_path: Path) -> list:
        args = [self.ffmpeg_path, "-y", "-hide_banner", "-i", str(input_path)]
        if self.loudness:
            args += ["-af", "loudnorm"]
        args += [
            "-acodec", NORM_CODEC,
            "-ac", str(NORM_CHANNELS),
            "-ar", str(NORM_SAMPLE_RATE),
            str(output_path),
        ]
        return args

    def normalize(self, input_path: str, output_dir: str) -> Path:
        """
        Produce ``normalized.wav`` in ``output_dir``.

        Raises:
            NormalizationError: If ffmpeg cannot be run, exits non-zero or
                produces no output file
        """
        source = Path(input_path)
        target_dir = Path(output_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        output_path = target_dir / "normalized.wav"

        try:
            result = run_media_tool(self.build_command(source, output_path), timeout=self.timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise NormalizationError(f"ffmpeg normalization failed: {e}")

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise NormalizationError(f"ffmpeg failed (rc={result.returncode}): {stderr[-300:]}")

        if not output_path.exists():
            raise NormalizationError("Normalized file not created")

        logger.info(f"Normalized audio: {output_path}")
        return output_path

    def normalize_or_original(self, input_path: str, output_dir: str) -> Path:
        """
        Normalize, falling back to the untouched input when ffmpeg fails.

        A failed transcode never aborts the job; the transcription service
        usually copes with the original container.
        """
        try:
            return self.normalize(input_path, output_dir)
        except NormalizationError as e:
            logger.warning(f"Audio normalization failed, using original file: {e}")
            return Path(input_path)
