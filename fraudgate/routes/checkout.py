from fastapi import APIRouter, Depends
from redis.exceptions import RedisError

from ..errors import SnapshotFormatError
from ..reconciler import dispatch_reconciliation
from ..rules.evaluator import evaluate_matches
from ..rules.model import CheckoutContext
from ..schemas import CheckoutInput, EvaluateResponse, ViolationOut
from ..snapshot.transport import SnapshotTransport
from ..utils.logging import logger
from .deps import get_transport

router = APIRouter(prefix="/v1", tags=["checkout"])

@router.post("/checkout/evaluate", response_model=EvaluateResponse)
def evaluate_checkout(payload: CheckoutInput, transport: SnapshotTransport = Depends(get_transport)):
    """
    Fetch the shop's latest snapshot, evaluate, then hand matched rules to the
    reconciler. A missing or unreadable snapshot allows the checkout: the
    filter may under-block, it never blocks because of its own failure.
    """
    try:
        snapshot = transport.fetch_latest(payload.shop_id)
    except (RedisError, SnapshotFormatError):
        logger.exception("Snapshot fetch failed for %s; allowing checkout %s",
                         payload.shop_id, payload.checkout_attempt_id)
        snapshot = None

    if snapshot is None:
        logger.warning("No rule snapshot for %s; checkout %s not filtered",
                       payload.shop_id, payload.checkout_attempt_id)
        return EvaluateResponse(ok=True)

    ctx = CheckoutContext.from_payload(payload.model_dump())
    if ctx.dropped_fields:
        logger.warning("Checkout %s has malformed fields %s; those rules cannot match",
                       payload.checkout_attempt_id, ", ".join(ctx.dropped_fields))

    matches = evaluate_matches(snapshot, ctx)
    if matches:
        logger.info("Checkout %s for %s blocked by %s", payload.checkout_attempt_id, payload.shop_id,
                    [m.violation.rule_category.value for m in matches])
        dispatch_reconciliation(payload.checkout_attempt_id, payload.shop_id, matches)

    return EvaluateResponse(
        ok=not matches,
        violations=[ViolationOut(**m.violation.to_dict()) for m in matches],
        rule_set_hash=snapshot.rule_set_hash,
    )
