"""
Loader for the curated list of pages pre-rendered into the cache at startup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import threading

from shared.logging import get_logger


@dataclass(frozen=True)
class HotPage:
    """A page worth rendering before the first request asks for it."""

    path: str
    weight: float = 0.0
    raw: Dict[str, Any] = field(default_factory=dict)


class HotPageLoader:
    """
    Reads hot pages from a JSON file.

    Accepted layouts are a bare list (strings or ``{"path": ..., "weight": ...}``
    objects) or an object holding such a list under ``"pages"``. A missing or
    malformed file yields no pages, so warming degrades to a no-op.
    """

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self._path = Path(config_path) if config_path else None
        self._lock = threading.Lock()
        self.logger = get_logger("render.hot_pages")
        self._pages = self._load()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def refresh(self) -> None:
        """Reload the hot page list from disk."""
        with self._lock:
            self._pages = self._load()

    def get_pages(self, limit: Optional[int] = None) -> List[HotPage]:
        """Return hot pages, heaviest first."""
        pages = sorted(self._pages, key=lambda page: page.weight, reverse=True)
        if limit:
            pages = pages[:limit]
        return pages

    def paths(self, limit: Optional[int] = None) -> List[str]:
        return [page.path for page in self.get_pages(limit)]

    def _load(self) -> List[HotPage]:
        if self._path is None:
            return []

        if not self._path.exists():
            self.logger.warning("Hot page file not found; cache warming will no-op", path=str(self._path))
            return []

        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (ValueError, OSError) as exc:
            self.logger.error("Failed to parse hot page file", path=str(self._path), error=str(exc))
            return []

        if isinstance(payload, dict):
            payload = payload.get("pages", [])
        if not isinstance(payload, list):
            self.logger.error("Hot page file has unexpected layout", path=str(self._path))
            return []

        pages: List[HotPage] = []
        for item in payload:
            if isinstance(item, str):
                pages.append(HotPage(path=item))
            elif isinstance(item, dict) and isinstance(item.get("path"), str):
                pages.append(HotPage(path=item["path"], weight=float(item.get("weight", 0.0)), raw=item))
        return pages
