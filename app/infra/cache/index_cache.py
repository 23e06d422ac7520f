# app/infra/cache/index_cache.py
import hashlib
import logging
import os
from collections import OrderedDict
from typing import Optional

from app.infra.search.faiss_index import LeafletVectorIndex

DEFAULT_SIZE = int(os.getenv("LEAFLET_CACHE_SIZE", "8"))

logger = logging.getLogger("folheto.index")


def pdf_key(pdf_bytes: bytes) -> str:
    return hashlib.sha256(pdf_bytes).hexdigest()


class LeafletIndexCache:
    """
    Process-local LRU of built leaflet indexes, keyed by SHA-256 of the PDF.
    Lives as long as the process; nothing is written to disk.
    max_entries=0 disables caching (index rebuilt on every question).
    """
    def __init__(self, max_entries: int = DEFAULT_SIZE):
        self.max_entries = max_entries
        self._items: "OrderedDict[str, LeafletVectorIndex]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._items)

    def get(self, key: str) -> Optional[LeafletVectorIndex]:
        idx = self._items.get(key)
        if idx is None:
            self.misses += 1
            return None
        self._items.move_to_end(key)
        self.hits += 1
        return idx

    def put(self, key: str, index: LeafletVectorIndex) -> None:
        if self.max_entries <= 0:
            return
        self._items[key] = index
        self._items.move_to_end(key)
        while len(self._items) > self.max_entries:
            old, _ = self._items.popitem(last=False)
            logger.debug("evicted leaflet index %s", old[:12])

