# fraudgate/reconciler.py
"""
Records which rules fired for a checkout attempt.

Delivery is at-least-once (Celery retries); application is idempotent via
match_receipts, keyed by (checkout_attempt_id, category, rule_id). This is the
only code path that writes rule state.
"""
from __future__ import annotations
from typing import Iterable, List, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import MatchReceipt
from .rules.model import Match, RuleCategory, RuleRef
from .store.repository import increment_match
from .utils.logging import logger


def refs_from_matches(matches: Iterable[Match]) -> List[RuleRef]:
    """Unique rule refs in first-seen order; one increment per rule per attempt."""
    seen = set()
    out: List[RuleRef] = []
    for m in matches:
        for ref in m.refs:
            if ref not in seen:
                seen.add(ref)
                out.append(ref)
    return out


def encode_refs(refs: Iterable[RuleRef]) -> List[list]:
    return [[RuleCategory(r.category).value, int(r.rule_id)] for r in refs]


def decode_refs(raw: Sequence[Sequence]) -> List[RuleRef]:
    return [RuleRef(RuleCategory(c), int(rid)) for c, rid in raw]


def _already_counted(db: Session, checkout_attempt_id: str, ref: RuleRef) -> bool:
    q = select(MatchReceipt.id).where(
        MatchReceipt.checkout_attempt_id == checkout_attempt_id,
        MatchReceipt.category == ref.category.value,
        MatchReceipt.rule_id == ref.rule_id,
    )
    return db.execute(q).scalar_one_or_none() is not None


def apply_matches(db: Session, checkout_attempt_id: str, shop_id: str, refs: Iterable[RuleRef]) -> int:
    """
    Increment each rule's counter once for this attempt. Receipts and increments
    commit together; a concurrent duplicate delivery surfaces as IntegrityError
    and the whole batch rolls back (the retry then skips what the other one applied).
    Returns the number of counters incremented.
    """
    applied = 0
    try:
        for ref in dict.fromkeys(refs):
            if _already_counted(db, checkout_attempt_id, ref):
                logger.debug("Match %s/%s already counted for attempt %s",
                             ref.category.value, ref.rule_id, checkout_attempt_id)
                continue
            db.add(MatchReceipt(
                checkout_attempt_id=checkout_attempt_id,
                shop_id=shop_id,
                category=ref.category.value,
                rule_id=ref.rule_id,
            ))
            db.flush()
            if increment_match(db, ref, 1, shop_id=shop_id):
                applied += 1
            else:
                logger.warning("Rule %s/%s for shop %s no longer exists; match not counted",
                               ref.category.value, ref.rule_id, shop_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return applied


def dispatch_reconciliation(checkout_attempt_id: str, shop_id: str, matches: Iterable[Match]) -> bool:
    """
    Fire-and-forget: enqueue counter updates for the rules behind `matches`.
    Never raises; a failed enqueue is logged as a lost increment and the
    checkout result is unaffected.
    """
    refs = refs_from_matches(matches)
    if not refs:
        return False
    from .celery_worker import reconcile_matches  # celery_worker imports this module

    try:
        reconcile_matches.delay(checkout_attempt_id, shop_id, encode_refs(refs))
        return True
    except Exception:
        logger.exception("Could not enqueue match reconciliation for attempt %s (%d rules lost)",
                         checkout_attempt_id, len(refs))
        return False
