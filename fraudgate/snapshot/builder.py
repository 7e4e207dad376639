# fraudgate/snapshot/builder.py
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from ..errors import SnapshotTooLarge
from ..rules.model import (
    SNAPSHOT_VERSION,
    DomainEntry,
    EmailEntry,
    FirstOrderConstraint,
    GeoEntry,
    IpEntry,
    RuleSet,
    RuleStatus,
    Snapshot,
)
from ..rules.normalize import (
    normalize_country,
    normalize_domain,
    normalize_email,
    normalize_field_name,
    parse_ip_or_range,
)
from ..utils.logging import logger
from .codec import compute_rule_set_hash, rule_sections


def _eligible(rule, merchant_id: str) -> bool:
    if rule.status is not RuleStatus.ACTIVE:
        return False
    if rule.merchant_id != merchant_id:
        logger.warning(
            "Skipping rule %s owned by %s while building snapshot for %s",
            rule.id, rule.merchant_id, merchant_id,
        )
        return False
    return True


def _email_entries(rule_set: RuleSet, merchant_id: str) -> List[EmailEntry]:
    seen = {}
    for r in rule_set.emails:
        if not _eligible(r, merchant_id):
            continue
        email = normalize_email(r.email)
        if email and email not in seen:
            seen[email] = EmailEntry(rule_id=r.id, email=email)
    return sorted(seen.values(), key=lambda e: e.email)


def _geo_entries(rule_set: RuleSet, merchant_id: str) -> List[GeoEntry]:
    out = []
    for r in rule_set.geo_rules:
        if not _eligible(r, merchant_id):
            continue
        cc = normalize_country(r.country_code)
        if cc:
            out.append(GeoEntry(rule_id=r.id, country_code=cc, action=r.action))
    return out


def _ip_entries(rule_set: RuleSet, merchant_id: str) -> List[IpEntry]:
    seen = {}
    for r in rule_set.ips:
        if not _eligible(r, merchant_id):
            continue
        net = parse_ip_or_range(r.value)
        if net is not None and net not in seen:
            seen[net] = IpEntry(rule_id=r.id, network=net)
    return sorted(seen.values(), key=lambda e: (e.network.version, e.network.network_address, e.network.prefixlen))


def _domain_entries(rule_set: RuleSet, merchant_id: str) -> List[DomainEntry]:
    out = []
    for r in rule_set.domains:
        if not _eligible(r, merchant_id):
            continue
        domain = normalize_domain(r.domain)
        if domain:
            out.append(DomainEntry(rule_id=r.id, domain=domain, filter_type=r.filter_type))
    return out


def _first_order(rule_set: RuleSet, merchant_id: str) -> Optional[FirstOrderConstraint]:
    for r in rule_set.first_order:
        if not _eligible(r, merchant_id):
            continue
        fields = sorted({f for f in (normalize_field_name(x) for x in r.required_fields) if f})
        mov = r.max_order_value
        if mov is not None and not isinstance(mov, Decimal):
            mov = Decimal(str(mov))
        if mov is None and not fields:
            continue
        currency = r.currency.strip().upper() if r.currency else None
        return FirstOrderConstraint(
            rule_id=r.id,
            max_order_value=mov,
            required_fields=tuple(fields),
            currency=currency or None,
        )
    return None


def build_snapshot(
    merchant_id: str,
    rule_set: RuleSet,
    *,
    max_rules: int,
    built_at: Optional[datetime] = None,
) -> Snapshot:
    """
    Project a merchant's live rules into an immutable Snapshot.

    - INACTIVE rules and values that do not normalize are left out
    - emails/IPs are deduplicated (first rule in stored order keeps the entry)
    - geo rules and domain filters keep stored order, since order is priority
    - raises SnapshotTooLarge instead of truncating
    """
    emails = _email_entries(rule_set, merchant_id)
    geo = _geo_entries(rule_set, merchant_id)
    ips = _ip_entries(rule_set, merchant_id)
    domains = _domain_entries(rule_set, merchant_id)
    first_order = _first_order(rule_set, merchant_id)

    count = len(emails) + len(geo) + len(ips) + len(domains) + (1 if first_order else 0)
    if count > max_rules:
        raise SnapshotTooLarge(merchant_id, count, max_rules)

    sections = rule_sections(emails, geo, ips, domains, first_order)
    return Snapshot(
        version=SNAPSHOT_VERSION,
        built_at=built_at or datetime.now(timezone.utc),
        merchant_id=merchant_id,
        rule_set_hash=compute_rule_set_hash(merchant_id, sections),
        email_blacklist=tuple(emails),
        geo_rules=tuple(geo),
        blocked_ips=tuple(ips),
        domain_filters=tuple(domains),
        first_order_rules=first_order,
    )
