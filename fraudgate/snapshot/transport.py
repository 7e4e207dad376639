# fraudgate/snapshot/transport.py
from __future__ import annotations
import threading
from typing import Dict, Optional, Protocol, Tuple

import redis

from ..config import settings
from ..errors import SnapshotFormatError
from ..rules.model import Snapshot
from ..utils.logging import logger
from . import codec


class SnapshotTransport(Protocol):
    def publish(self, merchant_id: str, snapshot: Snapshot) -> None: ...
    def fetch_latest(self, merchant_id: str) -> Optional[Snapshot]: ...
    def latest_hash(self, merchant_id: str) -> Optional[str]: ...


class RedisSnapshotTransport:
    """
    Stores the encoded snapshot and its rule_set_hash under two keys per merchant.
    The hash key is the freshness signal consumers compare against.
    """

    def __init__(self, client: "redis.Redis", prefix: str = settings.SNAPSHOT_KEY_PREFIX):
        self._r = client
        self._prefix = prefix.rstrip(":")

    @classmethod
    def from_url(cls, url: str = settings.REDIS_URL) -> "RedisSnapshotTransport":
        return cls(redis.Redis.from_url(url))

    def _keys(self, merchant_id: str) -> Tuple[str, str]:
        base = f"{self._prefix}:{merchant_id}"
        return f"{base}:payload", f"{base}:hash"

    def publish(self, merchant_id: str, snapshot: Snapshot) -> None:
        payload_key, hash_key = self._keys(merchant_id)
        pipe = self._r.pipeline(transaction=True)
        pipe.set(payload_key, codec.dumps(snapshot))
        pipe.set(hash_key, snapshot.rule_set_hash)
        pipe.execute()
        logger.info("Published snapshot for %s (hash=%s, rules=%s)",
                    merchant_id, snapshot.rule_set_hash[:12], snapshot.rule_count)

    def fetch_latest(self, merchant_id: str) -> Optional[Snapshot]:
        payload_key, _ = self._keys(merchant_id)
        raw = self._r.get(payload_key)
        if raw is None:
            return None
        try:
            return codec.loads(raw)
        except SnapshotFormatError:
            logger.exception("Discarding unreadable snapshot for %s", merchant_id)
            return None

    def latest_hash(self, merchant_id: str) -> Optional[str]:
        _, hash_key = self._keys(merchant_id)
        raw = self._r.get(hash_key)
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else str(raw)


class InMemorySnapshotTransport:
    """Process-local transport; keeps encoded bytes so round-tripping is exercised."""

    def __init__(self):
        self._lock = threading.Lock()
        self._payloads: Dict[str, bytes] = {}

    def publish(self, merchant_id: str, snapshot: Snapshot) -> None:
        raw = codec.dumps(snapshot)
        with self._lock:
            self._payloads[merchant_id] = raw

    def fetch_latest(self, merchant_id: str) -> Optional[Snapshot]:
        with self._lock:
            raw = self._payloads.get(merchant_id)
        return codec.loads(raw) if raw is not None else None

    def latest_hash(self, merchant_id: str) -> Optional[str]:
        snap = self.fetch_latest(merchant_id)
        return snap.rule_set_hash if snap else None


def is_stale(snapshot: Snapshot, freshness_hash: Optional[str]) -> bool:
    """A snapshot is stale when the transport advertises a different rule_set_hash."""
    return freshness_hash is not None and freshness_hash != snapshot.rule_set_hash
