"""
Utility functions for audio processing.

This module provides helper functions for running the external media tool,
decoding WAV payloads and formatting timestamps. Used throughout the
application for common audio processing tasks.

Key features:
- Subprocess wrapper for ffmpeg invocations
- WAV bytes to float32 mono array conversion (16 kHz for Whisper)
- Timestamp formatting for display
"""

import io
import logging
import subprocess
import wave
from typing import List

import numpy as np

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000


def format_timestamp(seconds: float) -> str:
    """
    Format seconds as MM:SS or HH:MM:SS.

    Args:
        seconds: Time in seconds

    Returns:
        Formatted time string
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def run_media_tool(args: List[str], timeout: float = 600) -> subprocess.CompletedProcess:
    """
    Run an external media tool and capture its output as text.

    The return code is not checked here: ffmpeg exits non-zero when asked only
    to inspect a file, yet still prints the stream information to stderr.

    Raises:
        FileNotFoundError: If the executable is not installed
        subprocess.TimeoutExpired: If the tool runs longer than ``timeout``
    """
    logger.debug("Running media tool: %s", " ".join(args))
    return subprocess.run(
        args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        timeout=timeout,
        check=False,
    )


def wav_bytes_to_array(data: bytes) -> np.ndarray:
    """
    Decode a 16-bit PCM WAV payload into the float32 mono array Whisper expects.

    Converts to mono by averaging channels and resamples to 16 kHz with linear
    interpolation when the source rate differs.

    Raises:
        ValueError: If the payload is not 16-bit PCM WAV
    """
    try:
        with wave.open(io.BytesIO(data), "rb") as wf:
            n_channels = wf.getnchannels()
            sampwidth = wf.getsampwidth()
            framerate = wf.getframerate()
            frames = wf.readframes(wf.getnframes())
    except wave.Error as e:
        raise ValueError(f"Not a WAV payload: {e}")

    if sampwidth != 2:
        raise ValueError(f"Unsupported sample width: {sampwidth}")

    audio = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0

    if n_channels > 1:
        audio = audio.reshape(-1, n_channels).mean(axis=1)

    if framerate != WHISPER_SAMPLE_RATE and len(audio) > 0:
        duration = len(audio) / framerate
        target_length = int(duration * WHISPER_SAMPLE_RATE)
        audio = np.interp(
            np.linspace(0, len(audio), target_length, dtype=np.float32),
            np.arange(len(audio), dtype=np.float32),
            audio,
        ).astype(np.float32)

    return audio
