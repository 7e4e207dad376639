# fraudgate/routes/deps.py
from typing import Optional
from ..config import settings
from ..snapshot.transport import RedisSnapshotTransport, SnapshotTransport

_transport: Optional[SnapshotTransport] = None

def get_transport() -> SnapshotTransport:
    global _transport
    if _transport is None:
        _transport = RedisSnapshotTransport.from_url(settings.REDIS_URL)
    return _transport
