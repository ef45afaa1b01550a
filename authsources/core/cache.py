"""
Local Source Cache

In-memory collection of file-backed login sources. Loaded once at
process start, then read concurrently by login workers and mutated by
the registry. Every public method takes the lock; reads hand out copies
so no caller ever holds cache-owned objects.
"""

import logging
import threading
from datetime import datetime
from typing import List, Optional, Set

from authsources.core.files import load_source_files
from authsources.core.models import AuthSource, Origin
from authsources.errors import NotFound

logger = logging.getLogger(__name__)


class LocalSourceCache:
    """
    Thread-safe cache of file-backed sources.

    Args:
        lock: Lock guarding the whole collection (default: threading.RLock)
    """

    def __init__(self, lock: Optional[threading.RLock] = None):
        self._lock = lock or threading.RLock()
        self._sources: List[AuthSource] = []
        self._loaded = False

    def load(self, directory: str, suffix: str = ".conf") -> int:
        """
        Populates the cache from a source directory. Call once at startup.

        Returns:
            Number of sources loaded

        Raises:
            SourceLoadError: Any broken source file
            RuntimeError: Cache already loaded
        """
        with self._lock:
            if self._loaded:
                raise RuntimeError("local login sources are already loaded")
            self._sources = load_source_files(directory, suffix)
            self._loaded = True
            logger.info(f"Local source cache: {len(self._sources)} file source(s) from {directory}")
            return len(self._sources)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sources)

    def len(self) -> int:
        return len(self)

    def list(self) -> List[AuthSource]:
        """Returns copies of every cached source."""
        with self._lock:
            return [source.copy() for source in self._sources]

    def activated_list(self) -> List[AuthSource]:
        """Returns copies of the activated sources."""
        with self._lock:
            return [source.copy() for source in self._sources if source.is_activated]

    def names(self, except_id: Optional[int] = None) -> Set[str]:
        """Names of the cached sources, leaving out `except_id` if given."""
        with self._lock:
            return {source.name for source in self._sources if source.id != except_id}

    def get_by_id(self, source_id: int) -> AuthSource:
        """
        Returns a copy of the source with the given ID.

        Raises:
            NotFound: No cached source has this ID
        """
        with self._lock:
            for source in self._sources:
                if source.id == source_id:
                    return source.copy()
        raise NotFound(source_id)

    def update_in_memory(self, source: AuthSource) -> None:
        """
        Replaces the cached entry with the same ID and, when the incoming
        source is default, clears the flag on every other entry.

        Never touches the filesystem.
        """
        source.updated = datetime.now()
        replacement = source.copy()

        with self._lock:
            for i, cached in enumerate(self._sources):
                if source.origin is Origin.FILE and cached.id == source.id:
                    self._sources[i] = replacement
                elif source.is_default:
                    cached.is_default = False
