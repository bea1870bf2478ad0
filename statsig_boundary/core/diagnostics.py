from __future__ import annotations

"""
In-memory diagnostics marker store.

Markers are begin/end records grouped by category. Each category has a
marker budget; once it is exhausted further markers are refused. The store
is shared process-wide and may be touched from any thread.
"""

from dataclasses import dataclass, field
import threading
import time
from typing import Any, Callable, Optional

from loguru import logger


ERROR_BOUNDARY = "error_boundary"


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Marker:
    """
    Single diagnostics record.

    Parameters
    ----------
    category : str
        Marker category, for example ``"error_boundary"``.
    key : str
        Operation key the marker belongs to.
    action : str
        ``"start"`` or ``"end"``.
    timestamp : int
        Epoch milliseconds at record time.
    fields : dict[str, Any]
        Caller supplied fields such as ``markerID`` and ``success``.
    """

    category: str
    key: str
    action: str
    timestamp: int
    fields: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        payload = {"key": self.key, "action": self.action, "timestamp": self.timestamp}
        payload.update(self.fields)
        return payload


class DiagnosticsMarker:
    """
    Handle for recording markers of one key.
    """

    def __init__(self, store: "Diagnostics", key: str) -> None:
        self._store = store
        self.key = key

    def start(self, fields: Optional[dict[str, Any]], category: str) -> bool:
        return self._store._add_marker(category, self.key, "start", fields)

    def end(self, fields: Optional[dict[str, Any]], category: str) -> bool:
        return self._store._add_marker(category, self.key, "end", fields)


class _MarkNamespace:
    """
    Resolve ``store.mark.<category>(key)`` into marker handles.
    """

    def __init__(self, store: "Diagnostics") -> None:
        self._store = store

    def __getattr__(self, category: str) -> Callable[[str], Optional[DiagnosticsMarker]]:
        if category.startswith("_"):
            raise AttributeError(category)

        def _mark(key: str) -> Optional[DiagnosticsMarker]:
            return self._store.marker_for(category, key)

        return _mark


class Diagnostics:
    """
    Thread-safe registry of diagnostics markers per category.
    """

    def __init__(self, default_max_markers: int = 30) -> None:
        """
        Initialize an empty store.

        Parameters
        ----------
        default_max_markers : int, optional
            Budget for categories without an explicit
            ``set_max_markers`` call, by default ``30``.
        """
        self._lock = threading.RLock()
        self._markers: dict[str, list[Marker]] = {}
        self._max_markers: dict[str, int] = {}
        self._default_max_markers = max(0, int(default_max_markers))
        self.mark = _MarkNamespace(self)

    def set_max_markers(self, category: str, max_markers: int) -> None:
        """
        Set the marker budget for a category.

        A budget of zero disables the category: ``mark.<category>`` then
        yields no handle.
        """
        with self._lock:
            self._max_markers[category] = max(0, int(max_markers))
        logger.trace("Diagnostics budget for {} set to {}", category, max_markers)

    @property
    def lock(self) -> threading.RLock:
        """
        Re-entrant store lock.

        Hold it to make a ``get_marker_count`` read and the following
        ``start`` one atomic step.
        """
        return self._lock

    def get_max_markers(self, category: str) -> int:
        with self._lock:
            return self._max_markers.get(category, self._default_max_markers)

    def marker_for(self, category: str, key: str) -> Optional[DiagnosticsMarker]:
        """
        Return a marker handle for ``key``.

        Parameters
        ----------
        category : str
            Marker category.
        key : str
            Operation key.

        Returns
        -------
        DiagnosticsMarker | None
            None when the category has no budget.
        """
        if self.get_max_markers(category) <= 0:
            return None
        return DiagnosticsMarker(self, key)

    def get_marker_count(self, category: str) -> int:
        with self._lock:
            return len(self._markers.get(category, ()))

    def get_markers(self, category: str) -> list[Marker]:
        """
        Return a copy of the recorded markers of a category.
        """
        with self._lock:
            return list(self._markers.get(category, ()))

    def clear(self, category: Optional[str] = None) -> None:
        with self._lock:
            if category is None:
                self._markers.clear()
            else:
                self._markers.pop(category, None)

    def _add_marker(
        self,
        category: str,
        key: str,
        action: str,
        fields: Optional[dict[str, Any]],
    ) -> bool:
        with self._lock:
            bucket = self._markers.setdefault(category, [])
            if len(bucket) >= self.get_max_markers(category):
                return False
            bucket.append(
                Marker(
                    category=category,
                    key=key,
                    action=action,
                    timestamp=_now_ms(),
                    fields=dict(fields or {}),
                )
            )
            return True


# Shared store used by every boundary built without an explicit one.
diagnostics = Diagnostics()
