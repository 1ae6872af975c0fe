import threading
from typing import Dict, Optional

from app.schemas.requirement import ExtractionResult


def normalize_description(description: str) -> str:
    return (description or "").strip().lower()


class ExtractionCache:
    """
    Process-local memo of extraction results, keyed by normalized description.

    - No TTL, no eviction: lives as long as the process.
    - Concurrent misses for the same key may both reach the model; last set wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, ExtractionResult] = {}

    def get(self, key: str) -> Optional[ExtractionResult]:
        with self._lock:
            hit = self._entries.get(key)
        return hit.model_copy(deep=True) if hit is not None else None

    def set(self, key: str, value: ExtractionResult) -> None:
        with self._lock:
            self._entries[key] = value.model_copy(deep=True)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
