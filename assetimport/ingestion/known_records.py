"""Per-batch snapshot of previously imported source URIs."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional, Set

from assetimport.errors import KnownRecordsUnavailable

logger = logging.getLogger(__name__)


class KnownRecordIndex:
    """Read-only snapshot plus a lock-guarded "seen this batch" set.

    The snapshot comes from one lookup call and is never modified; URIs
    claimed or imported during the batch live in the separate seen set.
    """

    def __init__(self, snapshot: Iterable[str] = (), *, key: Optional[Callable[[str], str]] = None):
        self._key = key or (lambda uri: uri)
        self._snapshot = frozenset(self._key(u) for u in snapshot if u)
        self._seen: Set[str] = set()
        self._claimed: Set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def load(cls, lookup, tenant_scope: str, *, key: Optional[Callable[[str], str]] = None) -> "KnownRecordIndex":
        try:
            uris = lookup.list_known_source_uris(tenant_scope)
        except Exception as e:
            raise KnownRecordsUnavailable(f"could not load imported sources for {tenant_scope!r}: {e}") from e
        index = cls(uris or (), key=key)
        logger.info("[import] loaded %d known sources for tenant=%s", len(index._snapshot), tenant_scope)
        return index

    @property
    def snapshot_size(self) -> int:
        return len(self._snapshot)

    def contains(self, uri: str) -> bool:
        k = self._key(uri)
        if k in self._snapshot:
            return True
        with self._lock:
            return k in self._seen

    def add(self, uri: str) -> None:
        with self._lock:
            self._seen.add(self._key(uri))

    def claim(self, uri: str) -> bool:
        """Atomically reserve `uri` for this batch; False if already claimed or imported."""
        k = self._key(uri)
        with self._lock:
            if k in self._claimed or k in self._seen or k in self._snapshot:
                return False
            self._claimed.add(k)
            return True
