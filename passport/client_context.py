"""Short-lived association between an identity's request and a client id.

The authorize step of an OIDC flow knows the client id while the claims step
may not. The association is created explicitly, bounded by a TTL, and
released explicitly once the token is issued or the flow aborts.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, Optional, Tuple

from .config import get_client_context_ttl


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Entry:
    client_id: str
    expires_at: float


class ClientContextStore:
    """Thread-safe TTL map keyed by ``(identity_id, request_key)``."""

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        ttl = get_client_context_ttl() if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl
        self._clock = clock
        self._entries: Dict[Tuple[str, str], _Entry] = {}
        self._lock = threading.Lock()
        self._next_sweep_at = clock() + ttl

    @staticmethod
    def _key(identity_id: str, request_key: str) -> Tuple[str, str]:
        if not identity_id or not request_key:
            raise ValueError("identity_id and request_key must be provided")
        return str(identity_id), str(request_key)

    def bind(self, identity_id: str, request_key: str, client_id: str) -> None:
        if not client_id:
            raise ValueError("client_id must be provided")
        key = self._key(identity_id, request_key)
        now = self._clock()
        with self._lock:
            # Abandoned flows never release; sweep at most once per TTL.
            if now >= self._next_sweep_at:
                self._drop_expired_locked(now)
            self._entries[key] = _Entry(client_id, now + self.ttl_seconds)

    def get(self, identity_id: str, request_key: str) -> Optional[str]:
        key = self._key(identity_id, request_key)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.client_id

    def release(self, identity_id: str, request_key: str) -> bool:
        """Drop the association; returns ``True`` when one existed."""

        key = self._key(identity_id, request_key)
        with self._lock:
            return self._entries.pop(key, None) is not None

    def _drop_expired_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._next_sweep_at = now + self.ttl_seconds
        if expired:
            logger.debug("Purged expired client contexts", extra={"purged": len(expired)})
        return len(expired)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            return self._drop_expired_locked(now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @contextmanager
    def scoped(self, identity_id: str, request_key: str, client_id: str) -> Iterator[str]:
        """Bind for the duration of the block and always release afterwards."""

        self.bind(identity_id, request_key, client_id)
        try:
            yield client_id
        finally:
            self.release(identity_id, request_key)


__all__ = ["ClientContextStore"]
