from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas import SnapshotInfo
from ..snapshot.service import rebuild_snapshot
from ..snapshot.transport import SnapshotTransport, is_stale
from .deps import get_transport

router = APIRouter(prefix="/v1/snapshots", tags=["snapshots"])

def _info(shop_id: str, snapshot, transport: SnapshotTransport) -> SnapshotInfo:
    return SnapshotInfo(
        shop_id=shop_id,
        version=snapshot.version,
        built_at=snapshot.built_at,
        rule_set_hash=snapshot.rule_set_hash,
        rule_count=snapshot.rule_count,
        stale=is_stale(snapshot, transport.latest_hash(shop_id)),
    )

@router.post("/{shop_id}/rebuild", response_model=SnapshotInfo)
def rebuild(shop_id: str, force: bool = False,
            db: Session = Depends(get_db),
            transport: SnapshotTransport = Depends(get_transport)):
    snapshot = rebuild_snapshot(db, transport, shop_id, force=force)
    if snapshot is None:
        # too many rules; previous snapshot remains published
        raise HTTPException(status_code=422, detail="Rule set too large to publish")
    return _info(shop_id, snapshot, transport)

@router.get("/{shop_id}", response_model=SnapshotInfo)
def latest(shop_id: str, transport: SnapshotTransport = Depends(get_transport)):
    snapshot = transport.fetch_latest(shop_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No snapshot published")
    return _info(shop_id, snapshot, transport)
