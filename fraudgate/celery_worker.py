from celery import Celery, Task
from sqlalchemy.exc import SQLAlchemyError

from fraudgate.config import settings
from fraudgate.database import get_sessionmaker
from fraudgate.errors import ReconciliationDeliveryFailed
from fraudgate.reconciler import apply_matches, decode_refs
from fraudgate.snapshot.service import rebuild_snapshot
from fraudgate.snapshot.transport import RedisSnapshotTransport
from fraudgate.store.repository import list_merchants
from fraudgate.utils.logging import logger

REDIS_URL = settings.REDIS_URL

celery = Celery("fraudgate", broker=REDIS_URL, backend=REDIS_URL)

celery.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    broker_connection_retry_on_startup=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "refresh-snapshots": {
            "task": "refresh_all_snapshots",
            "schedule": float(settings.SNAPSHOT_REFRESH_SECONDS),
        },
    },
)


class ReconcileTask(Task):
    def on_failure(self, exc, task_id, args, kwargs, einfo):
        # retries exhausted (or a non-retryable error): the increments are dropped
        attempt_id = args[0] if args else kwargs.get("checkout_attempt_id")
        refs = args[2] if len(args) > 2 else kwargs.get("refs", [])
        logger.warning(
            "Dropping %d match increment(s) for attempt %s after task %s failed: %s",
            len(refs or []), attempt_id, task_id, exc,
        )


@celery.task(
    name="reconcile_matches",
    base=ReconcileTask,
    autoretry_for=(ReconciliationDeliveryFailed,),
    retry_backoff=True,
    retry_backoff_max=settings.RECONCILE_BACKOFF_MAX_SECONDS,
    retry_jitter=True,
    max_retries=settings.RECONCILE_MAX_RETRIES,
)
def reconcile_matches(checkout_attempt_id: str, shop_id: str, refs: list):
    decoded = decode_refs(refs)
    SessionLocal = get_sessionmaker()
    with SessionLocal() as db:
        try:
            applied = apply_matches(db, checkout_attempt_id, shop_id, decoded)
        except SQLAlchemyError as e:
            logger.warning("Match reconciliation for attempt %s failed, will retry: %s", checkout_attempt_id, e)
            raise ReconciliationDeliveryFailed(checkout_attempt_id, decoded, e) from e
    logger.info("Attempt %s: %d of %d match counter(s) incremented", checkout_attempt_id, applied, len(decoded))
    return {"ok": True, "applied": applied}


@celery.task(name="rebuild_snapshot_async", autoretry_for=(SQLAlchemyError,), retry_backoff=True, max_retries=3)
def rebuild_snapshot_async(shop_id: str, force: bool = False):
    transport = RedisSnapshotTransport.from_url(REDIS_URL)
    SessionLocal = get_sessionmaker()
    with SessionLocal() as db:
        snapshot = rebuild_snapshot(db, transport, shop_id, force=force)
    if snapshot is None:
        return {"ok": False, "shop_id": shop_id}
    return {"ok": True, "shop_id": shop_id, "rule_set_hash": snapshot.rule_set_hash}


@celery.task(name="refresh_all_snapshots")
def refresh_all_snapshots():
    SessionLocal = get_sessionmaker()
    with SessionLocal() as db:
        shops = list_merchants(db)
    for shop_id in shops:
        rebuild_snapshot_async.delay(shop_id)
    logger.info("Queued snapshot refresh for %d shop(s)", len(shops))
    return {"ok": True, "queued": len(shops)}
