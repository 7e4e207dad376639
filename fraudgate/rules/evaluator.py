# fraudgate/rules/evaluator.py
"""
Pure checkout evaluation over an immutable Snapshot.

evaluate() is synchronous, does no I/O and touches no shared mutable state,
so it can run concurrently for unrelated checkout attempts. Missing or
malformed context fields mean "this category does not match"; nothing here
raises on bad buyer data.
"""
from __future__ import annotations
from typing import Callable, Dict, List, Tuple

from .model import (
    CheckoutContext,
    FilterType,
    GeoAction,
    Match,
    RuleCategory,
    RuleRef,
    Snapshot,
    Violation,
)
from .normalize import domain_matches, ip_in_network

MSG_EMAIL = "Email not allowed"
MSG_COUNTRY = "Orders not allowed from your country"
MSG_IP = "IP address not allowed"
MSG_DOMAIN = "Email domain not allowed"
MSG_FIRST_ORDER_VALUE = "Order total exceeds the limit for first orders"
MSG_FIRST_ORDER_FIELDS = "Missing required information for first order"

Check = Callable[[Snapshot, CheckoutContext], List[Match]]

# Order of evaluation and of violations in the result.
PRECEDENCE: Tuple[RuleCategory, ...] = (
    RuleCategory.EMAIL_BLACKLIST,
    RuleCategory.GEO,
    RuleCategory.IP,
    RuleCategory.DOMAIN,
    RuleCategory.FIRST_ORDER,
)


def _match(category: RuleCategory, message: str, *rule_ids: int) -> Match:
    return Match(
        violation=Violation(rule_category=category, message=message),
        refs=tuple(RuleRef(category, rid) for rid in rule_ids),
    )


def check_email(snapshot: Snapshot, ctx: CheckoutContext) -> List[Match]:
    if not ctx.email:
        return []
    rule_id = snapshot.email_index.get(ctx.email)
    if rule_id is None:
        return []
    return [_match(RuleCategory.EMAIL_BLACKLIST, MSG_EMAIL, rule_id)]


def check_geo(snapshot: Snapshot, ctx: CheckoutContext) -> List[Match]:
    if not ctx.country_code:
        return []
    for entry in snapshot.geo_rules:
        if entry.country_code != ctx.country_code:
            continue
        # first matching entry decides; an explicit ALLOW stops the scan
        if entry.action is GeoAction.BLOCK:
            return [_match(RuleCategory.GEO, MSG_COUNTRY, entry.rule_id)]
        return []
    return []


def check_ip(snapshot: Snapshot, ctx: CheckoutContext) -> List[Match]:
    if ctx.ip is None:
        return []
    for entry in snapshot.blocked_ips:
        if ip_in_network(ctx.ip, entry.network):
            return [_match(RuleCategory.IP, MSG_IP, entry.rule_id)]
    return []


def check_domain(snapshot: Snapshot, ctx: CheckoutContext) -> List[Match]:
    if not snapshot.domain_filters:
        return []
    if not ctx.email_domain:
        # allow-list mode cannot vouch for a domain it could not parse
        if ctx.domain_unparsed and snapshot.has_whitelist:
            return [_match(RuleCategory.DOMAIN, MSG_DOMAIN)]
        return []
    for entry in snapshot.domain_filters:
        if not domain_matches(entry.domain, ctx.email_domain):
            continue
        if entry.filter_type is FilterType.BLACKLIST:
            return [_match(RuleCategory.DOMAIN, MSG_DOMAIN, entry.rule_id)]
        return []
    if snapshot.has_whitelist:
        # allow-list mode: anything not listed is denied, no single rule to credit
        return [_match(RuleCategory.DOMAIN, MSG_DOMAIN)]
    return []


def check_first_order(snapshot: Snapshot, ctx: CheckoutContext) -> List[Match]:
    rule = snapshot.first_order_rules
    if rule is None or not ctx.is_first_order:
        return []
    out: List[Match] = []
    if rule.max_order_value is not None and ctx.order_total is not None:
        same_currency = not rule.currency or not ctx.currency or rule.currency == ctx.currency
        if same_currency and ctx.order_total > rule.max_order_value:
            out.append(_match(RuleCategory.FIRST_ORDER, MSG_FIRST_ORDER_VALUE, rule.rule_id))
    if rule.required_fields:
        missing = [f for f in rule.required_fields if f not in ctx.present_fields]
        if missing:
            out.append(_match(RuleCategory.FIRST_ORDER, MSG_FIRST_ORDER_FIELDS, rule.rule_id))
    return out


CHECKS: Dict[RuleCategory, Check] = {
    RuleCategory.EMAIL_BLACKLIST: check_email,
    RuleCategory.GEO: check_geo,
    RuleCategory.IP: check_ip,
    RuleCategory.DOMAIN: check_domain,
    RuleCategory.FIRST_ORDER: check_first_order,
}

if set(CHECKS) != set(RuleCategory) or set(PRECEDENCE) != set(RuleCategory):
    raise RuntimeError("every RuleCategory needs exactly one check and a place in PRECEDENCE")


def evaluate_matches(snapshot: Snapshot, context: CheckoutContext) -> List[Match]:
    """Violations in precedence order, each with the rule refs that produced it."""
    matches: List[Match] = []
    for category in PRECEDENCE:
        matches.extend(CHECKS[category](snapshot, context))
    return matches


def evaluate(snapshot: Snapshot, context: CheckoutContext) -> List[Violation]:
    """
    Returns the ordered violation list for one checkout attempt.
    Empty list means the checkout is allowed.
    """
    return [m.violation for m in evaluate_matches(snapshot, context)]
