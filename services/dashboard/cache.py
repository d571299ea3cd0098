"""Cache for rendered dashboard views.

Views are cached per path and per variant (the query string of the
request). Revalidating a path drops every variant cached under it, so the
next request recomputes the view from the store. The cache holds at most
``max_entries`` views; the least recently used one is evicted first.
"""

import logging
from collections import OrderedDict
from typing import Any

logger = logging.getLogger(__name__)


class PageCache:
    """In-process LRU cache of rendered views keyed by path and variant."""

    def __init__(self, enabled: bool = True, max_entries: int = 256) -> None:
        self.enabled = enabled
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple[str, str], Any] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, path: str, variant: str = "") -> Any | None:
        if not self.enabled:
            return None
        key = (path, variant)
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, path: str, variant: str, value: Any) -> None:
        if not self.enabled:
            return
        key = (path, variant)
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted cached view {evicted}")

    def revalidate_path(self, path: str) -> None:
        """Mark every cached variant of ``path`` as stale."""
        stale = [key for key in self._entries if key[0] == path]
        for key in stale:
            del self._entries[key]
        logger.info(f"Revalidated {path} ({len(stale)} cached view(s) dropped)")

    def clear(self) -> None:
        self._entries.clear()
