# fraudgate/store/repository.py
from __future__ import annotations
from typing import Dict, List, Optional, Type

from sqlalchemy import select, update, union
from sqlalchemy.orm import Session

from ..models import (
    BlockedIpRule,
    DomainFilterRule,
    EmailBlacklistRule,
    FirstOrderRuleRow,
    GeoRuleRow,
)
from ..rules.model import (
    DomainRule,
    EmailRule,
    FilterType,
    FirstOrderRule,
    GeoAction,
    GeoRule,
    IpRule,
    RuleCategory,
    RuleRef,
    RuleSet,
    RuleStatus,
)

TABLES: Dict[RuleCategory, Type] = {
    RuleCategory.EMAIL_BLACKLIST: EmailBlacklistRule,
    RuleCategory.GEO: GeoRuleRow,
    RuleCategory.IP: BlockedIpRule,
    RuleCategory.DOMAIN: DomainFilterRule,
    RuleCategory.FIRST_ORDER: FirstOrderRuleRow,
}


def _status(raw: Optional[str]) -> RuleStatus:
    # unknown statuses are never eligible
    return RuleStatus.ACTIVE if (raw or "").upper() == RuleStatus.ACTIVE.value else RuleStatus.INACTIVE


def _ordered(db: Session, model, shop_id: str) -> list:
    stmt = select(model).where(model.shop_id == shop_id).order_by(model.position, model.id)
    return list(db.execute(stmt).scalars().all())


def get_active_rules(db: Session, shop_id: str) -> RuleSet:
    """
    Current rule set for a merchant, in stored order (position, id).
    Inactive rules are included with their status; the snapshot builder drops them.
    Rows with an unknown action/filter type are skipped.
    """
    geo: List[GeoRule] = []
    for r in _ordered(db, GeoRuleRow, shop_id):
        try:
            action = GeoAction((r.action or "").upper())
        except ValueError:
            continue
        geo.append(GeoRule(id=r.id, merchant_id=r.shop_id, country_code=r.country_code,
                           action=action, status=_status(r.status)))

    domains: List[DomainRule] = []
    for r in _ordered(db, DomainFilterRule, shop_id):
        try:
            ftype = FilterType((r.filter_type or "").upper())
        except ValueError:
            continue
        domains.append(DomainRule(id=r.id, merchant_id=r.shop_id, domain=r.domain,
                                  filter_type=ftype, status=_status(r.status)))

    return RuleSet(
        merchant_id=shop_id,
        emails=tuple(
            EmailRule(id=r.id, merchant_id=r.shop_id, email=r.email, status=_status(r.status))
            for r in _ordered(db, EmailBlacklistRule, shop_id)
        ),
        geo_rules=tuple(geo),
        ips=tuple(
            IpRule(id=r.id, merchant_id=r.shop_id, value=r.value, status=_status(r.status))
            for r in _ordered(db, BlockedIpRule, shop_id)
        ),
        domains=tuple(domains),
        first_order=tuple(
            FirstOrderRule(
                id=r.id,
                merchant_id=r.shop_id,
                max_order_value=r.max_order_value,
                required_fields=frozenset(r.required_fields or ()),
                currency=r.currency,
                status=_status(r.status),
            )
            for r in _ordered(db, FirstOrderRuleRow, shop_id)
        ),
    )


def increment_match(db: Session, ref: RuleRef, delta: int = 1, shop_id: Optional[str] = None) -> bool:
    """
    Atomic `matches = matches + delta` in SQL, so parallel reconciliations add up.
    Does not commit. Returns False when the rule no longer exists.
    """
    if delta < 0:
        raise ValueError("match counters never decrease")
    model = TABLES[RuleCategory(ref.category)]
    stmt = update(model).where(model.id == ref.rule_id)
    if shop_id is not None:
        stmt = stmt.where(model.shop_id == shop_id)
    res = db.execute(stmt.values(matches=model.matches + delta))
    return res.rowcount > 0


def get_match_count(db: Session, ref: RuleRef) -> Optional[int]:
    model = TABLES[RuleCategory(ref.category)]
    return db.execute(select(model.matches).where(model.id == ref.rule_id)).scalar_one_or_none()


def list_merchants(db: Session) -> List[str]:
    """Every shop that owns at least one rule."""
    stmt = union(*(select(m.shop_id) for m in TABLES.values()))
    return sorted(db.execute(stmt).scalars().all())
