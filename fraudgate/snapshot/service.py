# fraudgate/snapshot/service.py
from __future__ import annotations
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..errors import SnapshotTooLarge
from ..rules.model import Snapshot
from ..store.repository import get_active_rules
from ..utils.logging import logger
from .builder import build_snapshot
from .transport import SnapshotTransport


def rebuild_snapshot(
    db: Session,
    transport: SnapshotTransport,
    shop_id: str,
    *,
    max_rules: Optional[int] = None,
    force: bool = False,
) -> Optional[Snapshot]:
    """
    Read the store, build, publish. Returns the built snapshot, or None
    when the build was rejected (the previous snapshot stays live).
    An unchanged rule_set_hash is not republished unless force=True.
    """
    rule_set = get_active_rules(db, shop_id)
    limit = max_rules if max_rules is not None else settings.SNAPSHOT_MAX_RULES
    try:
        snapshot = build_snapshot(shop_id, rule_set, max_rules=limit)
    except SnapshotTooLarge as e:
        logger.error("Snapshot build rejected for %s: %s (keeping previous snapshot)", shop_id, e)
        return None

    if not force and transport.latest_hash(shop_id) == snapshot.rule_set_hash:
        logger.info("Rules unchanged for %s (hash=%s); not republishing", shop_id, snapshot.rule_set_hash[:12])
        return snapshot

    transport.publish(shop_id, snapshot)
    return snapshot
