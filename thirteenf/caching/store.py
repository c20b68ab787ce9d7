"""
Key-value caches for ticker and sector lookups.

Both caches are created once by the orchestrator and handed to the
resolution and enrichment components. A stored ``None`` is a negative entry
("looked up, nothing found") and is distinct from a missing key; use
``contains`` to tell them apart.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Generic, Optional, Protocol, TypeVar, runtime_checkable

from ..core.exceptions import CacheError
from ..utils.logger import get_logger

logger = get_logger("thirteenf.caching.store")

K = TypeVar("K")
V = TypeVar("V")


@runtime_checkable
class Cache(Protocol[K, V]):
    """Cache contract shared by the resolution and enrichment stages."""

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        ...

    def set(self, key: K, value: Optional[V]) -> None:
        ...

    def contains(self, key: K) -> bool:
        ...

    def items(self) -> list[tuple[K, Optional[V]]]:
        ...

    def __len__(self) -> int:
        ...

    def load_from_disk(self) -> int:
        """Load persisted entries; returns the number loaded."""
        ...

    def persist(self) -> None:
        """Write all entries back to durable storage."""
        ...


class InMemoryCache(Generic[K, V]):
    """
    Dictionary-backed cache.

    ``load_from_disk`` and ``persist`` are no-ops, which makes this the
    cache of choice for tests.
    """

    def __init__(self, initial: Optional[dict] = None):
        self._data: dict = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: K, value: Optional[V]) -> None:
        with self._lock:
            self._data[key] = value

    def contains(self, key: K) -> bool:
        with self._lock:
            return key in self._data

    def __contains__(self, key: object) -> bool:
        return self.contains(key)  # type: ignore[arg-type]

    def items(self) -> list[tuple[K, Optional[V]]]:
        with self._lock:
            return list(self._data.items())

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._data.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def load_from_disk(self) -> int:
        return len(self)

    def persist(self) -> None:
        return None


class JsonFileCache(InMemoryCache[str, Any]):
    """
    Cache mirrored to a JSON object file.

    The file is read once by ``load_from_disk`` and rewritten wholesale by
    ``persist``. Concurrent processes sharing the file lose updates; the
    pipeline runs as a single process.
    """

    def __init__(self, path: str | Path, name: str = "cache"):
        super().__init__()
        self.path = Path(path)
        self.name = name

    def load_from_disk(self) -> int:
        """
        Load entries from the file.

        A missing file starts an empty cache; a corrupt file is logged and
        ignored so the run can rebuild it.
        """
        if not self.path.exists():
            logger.info(f"No {self.name} file at {self.path}, starting empty")
            return 0

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read {self.name} file {self.path}: {e}")
            return 0

        if not isinstance(data, dict):
            logger.warning(f"Ignoring {self.name} file {self.path}: expected a JSON object")
            return 0

        with self._lock:
            self._data.update(data)
            count = len(self._data)

        logger.info(f"Loaded {count} {self.name} entries from {self.path}")
        return count

    def persist(self) -> None:
        """Rewrite the whole file atomically (temp file + rename)."""
        with self._lock:
            snapshot = dict(self._data)

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError as e:
            raise CacheError(
                f"Failed to persist {self.name}",
                context={"path": str(self.path), "error": str(e)},
            ) from e

        logger.info(f"Persisted {len(snapshot)} {self.name} entries to {self.path}")
