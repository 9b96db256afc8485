"""
Audio acquisition: turn a job's source into a local file.

Uploaded files are already on disk and are used in place. Remote URLs need a
fetcher; deployments without one reject URL jobs with an explicit
unsupported-source error instead of degrading silently.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from requests.exceptions import RequestException

from ..errors import AudioSourceError, UnsupportedSourceError
from .models import SourceKind

logger = logging.getLogger(__name__)


@dataclass
class AcquiredAudio:
    """A local audio file ready for probing."""

    path: Path
    temporary: bool = False


class HttpAudioFetcher:
    """Download remote audio over HTTP(S) into a job workspace."""

    CHUNK_SIZE = 64 * 1024

    def __init__(self, max_bytes: int = 100 * 1024 * 1024, timeout: float = 60, session: Optional[requests.Session] = None):
        """
        Args:
            max_bytes: Abort downloads larger than this
            timeout: Connect/read timeout in seconds
            session: Optional requests session (injected in tests)
        """
        self.max_bytes = max_bytes
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, url: str, workspace: Path) -> Path:
        """
        Stream ``url`` into ``workspace`` and return the local path.

        Raises:
            AudioSourceError: On HTTP errors, unsupported schemes or oversized bodies
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise UnsupportedSourceError(f"Unsupported source: URL scheme '{parsed.scheme}' is not supported")

        suffix = Path(parsed.path).suffix.lower() or ".audio"
        workspace.mkdir(parents=True, exist_ok=True)
        target = workspace / f"download{suffix}"

        written = 0
        try:
            with self.session.get(url, stream=True, timeout=self.timeout) as response:
                response.raise_for_status()
                with open(target, "wb") as out:
                    for chunk in response.iter_content(chunk_size=self.CHUNK_SIZE):
                        if not chunk:
                            continue
                        written += len(chunk)
                        if written > self.max_bytes:
                            raise AudioSourceError(
                                f"Remote audio exceeds the {self.max_bytes // (1024 * 1024)}MB download limit"
                            )
                        out.write(chunk)
        except RequestException as e:
            raise AudioSourceError(f"Audio download failed: {e}")
        except AudioSourceError:
            if target.exists():
                target.unlink()
            raise

        logger.info(f"Downloaded {written} bytes from {parsed.netloc}")
        return target


class AudioAcquirer:
    """Resolves a (source kind, reference) pair into a local audio file."""

    def __init__(self, upload_dir: str, fetcher: Optional[HttpAudioFetcher] = None):
        """
        Args:
            upload_dir: Directory where the upload layer stores files
            fetcher: Remote fetcher; None disables URL ingestion
        """
        self.upload_dir = Path(upload_dir)
        self.fetcher = fetcher

    def acquire(self, source_kind: SourceKind, reference: Optional[str], workspace: Path) -> AcquiredAudio:
        """
        Resolve the job's source.

        Raises:
            UnsupportedSourceError: For URL sources when no fetcher is configured
            AudioSourceError: When the reference is missing or the file does not exist
        """
        if not reference:
            raise AudioSourceError("No valid audio source provided")

        if source_kind == SourceKind.FILE:
            path = Path(reference)
            if not path.is_absolute():
                path = self.upload_dir / path
            if not path.is_file():
                raise AudioSourceError(f"Audio file not found: {os.path.basename(reference)}")
            return AcquiredAudio(path=path, temporary=False)

        if source_kind == SourceKind.URL:
            if self.fetcher is None:
                raise UnsupportedSourceError("Unsupported source: URL download is not available")
            return AcquiredAudio(path=self.fetcher.fetch(reference, workspace), temporary=True)

        raise UnsupportedSourceError(f"Unsupported source: {source_kind}")

    def release(self, source_kind: SourceKind, reference: Optional[str]) -> bool:
        """
        Delete a job's stored upload once the job is finished with it.

        Only files inside ``upload_dir`` are removed; URL sources live in the
        job workspace and are removed with it.

        Returns:
            True if a file was deleted
        """
        if source_kind != SourceKind.FILE or not reference:
            return False

        path = Path(reference)
        if not path.is_absolute():
            path = self.upload_dir / path
        if not path.resolve().is_relative_to(self.upload_dir.resolve()):
            logger.warning(f"Not deleting {path}: outside the upload directory")
            return False

        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete upload {path.name}: {e}")
            return False

        logger.info(f"Deleted upload {path.name}")
        return True
