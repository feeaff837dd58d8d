"""Explicitly owned cache of resolved fractals and in-flight loads."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass
class LoadedFractal:
    """A resolved fractal: the renderable component plus its styles."""

    component: Any
    styles: Optional[str] = None


class FractalCache:
    """Resolved entries keyed by id, plus the pending-load map.

    Owned by one ``RuntimeLoader`` (one per host application). Mutated only
    from the event loop thread.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, LoadedFractal] = {}
        self._pending: Dict[str, "asyncio.Task[Optional[LoadedFractal]]"] = {}

    def get(self, fractal_id: str) -> Optional[LoadedFractal]:
        return self._entries.get(fractal_id)

    def put(self, fractal_id: str, entry: LoadedFractal) -> None:
        self._entries[fractal_id] = entry

    def has(self, fractal_id: str) -> bool:
        return fractal_id in self._entries

    def invalidate(self, fractal_id: str) -> bool:
        """Drop one entry. Returns True when something was removed."""
        return self._entries.pop(fractal_id, None) is not None

    def clear(self) -> None:
        """Drop every resolved entry. In-flight loads keep running."""
        self._entries.clear()

    def ids(self) -> List[str]:
        return list(self._entries)

    def get_pending(self, fractal_id: str) -> Optional["asyncio.Task[Any]"]:
        return self._pending.get(fractal_id)

    def set_pending(self, fractal_id: str, task: "asyncio.Task[Any]") -> None:
        self._pending[fractal_id] = task

    def clear_pending(self, fractal_id: str) -> None:
        self._pending.pop(fractal_id, None)

    def pending_ids(self) -> List[str]:
        return list(self._pending)

    def __contains__(self, fractal_id: object) -> bool:
        return fractal_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
