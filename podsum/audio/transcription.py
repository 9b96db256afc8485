"""
Audio transcription functionality.

This module turns raw audio bytes into a TranscriptionResult. Two backends
share the same contract:

- OpenAITranscriber: the hosted Whisper API (``whisper-1``, verbose JSON with
  segment timestamps)
- WhisperTranscriber: a local openai-whisper model

Key features:
- Lazy loading of the client/model so importing the module is cheap
- Per-segment confidence derived from ``avg_logprob``
- Fallbacks for an empty segment list and a missing detected language
"""

import io
import logging
import math
import os
import tempfile
from typing import Any, Dict, List, Optional, Protocol

from ..errors import TranscriptionError
from .models import TranscriptionResult, TranscriptSegment, calculate_overall_confidence
from .utils import wav_bytes_to_array

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"


class Transcriber(Protocol):
    """Speech-to-text contract consumed by the pipeline."""

    def transcribe(
        self, audio: bytes, language: Optional[str] = None, prompt: Optional[str] = None, filename: str = "audio.wav"
    ) -> TranscriptionResult: ...


def _field(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an SDK object or a plain dict."""
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def segment_confidence(avg_logprob: Optional[float]) -> Optional[float]:
    """Map Whisper's average log probability to a [0, 1] confidence."""
    if avg_logprob is None:
        return None
    return max(0.0, min(1.0, math.exp(avg_logprob)))


def build_result(raw: Any, requested_language: Optional[str]) -> TranscriptionResult:
    """
    Convert a Whisper-shaped response (API object or local dict) to a TranscriptionResult.

    Args:
        raw: Response carrying text, language, duration and segments
        requested_language: Language hint sent with the request

    Returns:
        TranscriptionResult with the overall confidence averaged from segments
    """
    segments: List[TranscriptSegment] = []
    for seg in _field(raw, "segments") or []:
        segments.append(
            TranscriptSegment(
                start=float(_field(seg, "start", 0.0) or 0.0),
                end=float(_field(seg, "end", 0.0) or 0.0),
                text=(_field(seg, "text", "") or "").strip(),
                confidence=segment_confidence(_field(seg, "avg_logprob")),
            )
        )

    duration = _field(raw, "duration")
    if not duration and segments:
        duration = segments[-1].end

    return TranscriptionResult(
        text=(_field(raw, "text", "") or "").strip(),
        language=_field(raw, "language") or requested_language or DEFAULT_LANGUAGE,
        duration=float(duration or 0.0),
        segments=segments,
        confidence=calculate_overall_confidence(segments),
    )


class OpenAITranscriber:
    """
    Handle transcription using the OpenAI audio API.

    The client is created on first use; the API key is only needed when a
    job actually reaches the transcription stage.
    """

    def __init__(self, api_key: str, model: str = "whisper-1", client: Optional[Any] = None):
        """
        Initialize transcriber.

        Args:
            api_key: OpenAI API authentication key
            model: Transcription model name (default: "whisper-1")
            client: Pre-built OpenAI client (injected in tests)
        """
        self.api_key = api_key
        self.model = model
        self.client = client

    def _load_client(self):
        if self.client is not None:
            return

        if not self.api_key:
            raise TranscriptionError("Transcription failed: OPENAI_API_KEY is not configured")

        from openai import OpenAI

        self.client = OpenAI(api_key=self.api_key)
        logger.info(f"OpenAI transcription client loaded (model: {self.model})")

    def transcribe(
        self, audio: bytes, language: Optional[str] = None, prompt: Optional[str] = None, filename: str = "audio.wav"
    ) -> TranscriptionResult:
        """
        Transcribe audio bytes.

        Args:
            audio: Encoded audio file contents
            language: Optional ISO language hint
            prompt: Optional disambiguation prompt (names, jargon)
            filename: Name sent with the upload; its extension tells the API the format

        Raises:
            TranscriptionError: If the service call fails (no retry)
        """
        self._load_client()

        logger.info(f"Starting transcription: {len(audio)} bytes, language={language or 'auto'}, prompt={bool(prompt)}")

        request: Dict[str, Any] = {
            "file": (filename, io.BytesIO(audio)),
            "model": self.model,
            "response_format": "verbose_json",
            "timestamp_granularities": ["segment"],
        }
        if language:
            request["language"] = language
        if prompt:
            request["prompt"] = prompt

        try:
            response = self.client.audio.transcriptions.create(**request)
        except Exception as e:
            logger.error(f"Transcription request failed: {e}")
            raise TranscriptionError(f"Transcription failed: {e}") from e

        result = build_result(response, language)
        logger.info(
            f"Transcription completed: {len(result.text)} chars, {len(result.segments)} segments, "
            f"confidence {result.confidence}"
        )
        return result


class WhisperTranscriber:
    """
    Handle transcription using a local Whisper model.

    Normalized WAV payloads are decoded in memory; anything else is written to
    a temporary file so Whisper's own ffmpeg loader can read it.
    """

    def __init__(self, model_name: str = "base"):
        """
        Args:
            model_name: Whisper model size (tiny, base, small, medium, large)
        """
        self.model_name = model_name
        self.model = None

    def load_model(self):
        """Load the Whisper model."""
        if self.model is None:
            import whisper

            self.model = whisper.load_model(self.model_name)
            logger.info(f"Loaded Whisper model: {self.model_name}")

    def transcribe(
        self, audio: bytes, language: Optional[str] = None, prompt: Optional[str] = None, filename: str = "audio.wav"
    ) -> TranscriptionResult:
        self.load_model()

        try:
            if filename.lower().endswith(".wav"):
                try:
                    raw = self.model.transcribe(
                        wav_bytes_to_array(audio), language=language, initial_prompt=prompt, verbose=False
                    )
                    return build_result(raw, language)
                except ValueError:
                    logger.debug("Payload is not 16-bit PCM, handing the file to Whisper")

            suffix = os.path.splitext(filename)[1] or ".audio"
            with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
                tmp_file.write(audio)
                temp_path = tmp_file.name
            try:
                raw = self.model.transcribe(temp_path, language=language, initial_prompt=prompt, verbose=False)
            finally:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
        except Exception as e:
            raise TranscriptionError(f"Transcription failed: {e}") from e

        return build_result(raw, language)
