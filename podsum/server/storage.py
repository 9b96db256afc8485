"""
Storage collaborators for finished summaries.

The pipeline hands each Summary to a store and keeps no copy. Two stores are
provided: an in-memory map for development and tests, and a JSON-file store
that writes one document per summary.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from .models import Summary

logger = logging.getLogger(__name__)


class SummaryStore(Protocol):
    def save(self, summary: Summary) -> None: ...

    def get(self, summary_id: str) -> Optional[Summary]: ...

    def list_for_owner(self, owner_id: str) -> List[Summary]: ...

    def delete(self, summary_id: str) -> bool: ...


class InMemorySummaryStore:
    """Summaries kept in a dict for the lifetime of the process."""

    def __init__(self):
        self._summaries: Dict[str, Summary] = {}
        self._lock = threading.Lock()

    def save(self, summary: Summary) -> None:
        with self._lock:
            self._summaries[summary.id] = summary
        logger.info(f"Summary {summary.id} stored for job {summary.job_id}")

    def get(self, summary_id: str) -> Optional[Summary]:
        with self._lock:
            return self._summaries.get(summary_id)

    def delete(self, summary_id: str) -> bool:
        with self._lock:
            return self._summaries.pop(summary_id, None) is not None

    def list_for_owner(self, owner_id: str) -> List[Summary]:
        with self._lock:
            summaries = [s for s in self._summaries.values() if s.owner_id == owner_id]
        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries


class JsonFileSummaryStore:
    """One ``<summary_id>.json`` file per summary under ``summaries_dir``."""

    def __init__(self, summaries_dir: str = "summaries"):
        self.summaries_dir = Path(summaries_dir)
        self.summaries_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, summary_id: str) -> Path:
        # Summary ids are generated server side; reject anything path-like anyway
        if "/" in summary_id or "\\" in summary_id or summary_id.startswith("."):
            raise ValueError(f"Invalid summary id: {summary_id}")
        return self.summaries_dir / f"{summary_id}.json"

    def save(self, summary: Summary) -> None:
        file_path = self._path(summary.id)
        tmp_path = file_path.with_suffix(".json.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(summary.to_dict(), f, ensure_ascii=False, indent=2)
        tmp_path.replace(file_path)
        logger.info(f"Summary {summary.id} written to {file_path}")

    def get(self, summary_id: str) -> Optional[Summary]:
        try:
            file_path = self._path(summary_id)
        except ValueError:
            return None
        if not file_path.exists():
            return None

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return Summary.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.error(f"Summary file {file_path} is unreadable: {e}")
            return None

    def list_for_owner(self, owner_id: str) -> List[Summary]:
        summaries = []
        for file_path in self.summaries_dir.glob("*.json"):
            summary = self.get(file_path.stem)
            if summary and summary.owner_id == owner_id:
                summaries.append(summary)
        summaries.sort(key=lambda s: s.created_at, reverse=True)
        return summaries

    def delete(self, summary_id: str) -> bool:
        try:
            file_path = self._path(summary_id)
        except ValueError:
            return False
        try:
            file_path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"Summary file {file_path} deleted")
        return True
