# fraudgate/rules/model.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from functools import cached_property
from typing import Any, Dict, FrozenSet, Mapping, NamedTuple, Optional, Tuple

from .normalize import (
    IpAddress,
    IpNetwork,
    email_domain,
    normalize_country,
    normalize_domain,
    normalize_email,
    normalize_field_name,
    parse_ip,
)

SNAPSHOT_VERSION = 1
VIOLATION_TARGET = "cart"

# -----------------------------
# Enums
# -----------------------------
class RuleCategory(str, Enum):
    EMAIL_BLACKLIST = "email_blacklist"
    GEO = "geo"
    IP = "ip"
    DOMAIN = "domain"
    FIRST_ORDER = "first_order"


class RuleStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class GeoAction(str, Enum):
    ALLOW = "ALLOW"
    BLOCK = "BLOCK"


class FilterType(str, Enum):
    BLACKLIST = "BLACKLIST"
    WHITELIST = "WHITELIST"


class RuleRef(NamedTuple):
    category: RuleCategory
    rule_id: int


# -----------------------------
# Live rules, as read from the store
# -----------------------------
@dataclass(frozen=True)
class EmailRule:
    id: int
    merchant_id: str
    email: str
    status: RuleStatus = RuleStatus.ACTIVE


@dataclass(frozen=True)
class GeoRule:
    id: int
    merchant_id: str
    country_code: str
    action: GeoAction
    status: RuleStatus = RuleStatus.ACTIVE


@dataclass(frozen=True)
class IpRule:
    id: int
    merchant_id: str
    value: str  # exact address or CIDR
    status: RuleStatus = RuleStatus.ACTIVE


@dataclass(frozen=True)
class DomainRule:
    id: int
    merchant_id: str
    domain: str
    filter_type: FilterType
    status: RuleStatus = RuleStatus.ACTIVE


@dataclass(frozen=True)
class FirstOrderRule:
    id: int
    merchant_id: str
    max_order_value: Optional[Decimal] = None
    required_fields: FrozenSet[str] = frozenset()
    currency: Optional[str] = None
    status: RuleStatus = RuleStatus.ACTIVE


@dataclass(frozen=True)
class RuleSet:
    """All of a merchant's rules in stored order, regardless of status."""
    merchant_id: str
    emails: Tuple[EmailRule, ...] = ()
    geo_rules: Tuple[GeoRule, ...] = ()
    ips: Tuple[IpRule, ...] = ()
    domains: Tuple[DomainRule, ...] = ()
    first_order: Tuple[FirstOrderRule, ...] = ()


# -----------------------------
# Snapshot (immutable, evaluator input)
# -----------------------------
@dataclass(frozen=True)
class EmailEntry:
    rule_id: int
    email: str


@dataclass(frozen=True)
class GeoEntry:
    rule_id: int
    country_code: str
    action: GeoAction


@dataclass(frozen=True)
class IpEntry:
    rule_id: int
    network: IpNetwork


@dataclass(frozen=True)
class DomainEntry:
    rule_id: int
    domain: str
    filter_type: FilterType


@dataclass(frozen=True)
class FirstOrderConstraint:
    rule_id: int
    max_order_value: Optional[Decimal] = None
    required_fields: Tuple[str, ...] = ()
    currency: Optional[str] = None


@dataclass(frozen=True)
class Snapshot:
    version: int
    built_at: datetime
    merchant_id: str
    rule_set_hash: str
    email_blacklist: Tuple[EmailEntry, ...] = ()
    geo_rules: Tuple[GeoEntry, ...] = ()
    blocked_ips: Tuple[IpEntry, ...] = ()
    domain_filters: Tuple[DomainEntry, ...] = ()
    first_order_rules: Optional[FirstOrderConstraint] = None

    @property
    def rule_count(self) -> int:
        return (
            len(self.email_blacklist)
            + len(self.geo_rules)
            + len(self.blocked_ips)
            + len(self.domain_filters)
            + (1 if self.first_order_rules is not None else 0)
        )

    # Derived lookups; computed once per snapshot and never mutated afterwards.
    @cached_property
    def email_index(self) -> Dict[str, int]:
        return {e.email: e.rule_id for e in self.email_blacklist}

    @cached_property
    def has_whitelist(self) -> bool:
        return any(d.filter_type is FilterType.WHITELIST for d in self.domain_filters)


# -----------------------------
# Checkout context
# -----------------------------
def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = repr(value)
    try:
        d = Decimal(value) if isinstance(value, (Decimal, int, str)) else None
    except (InvalidOperation, ValueError):
        return None
    if d is None or not d.is_finite():
        return None
    return d


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _after_at(value: Any) -> str:
    if not isinstance(value, str) or "@" not in value:
        return ""
    return value.rpartition("@")[2]


@dataclass(frozen=True)
class CheckoutContext:
    email: str = ""
    country_code: str = ""
    ip: Optional[IpAddress] = None
    email_domain: str = ""
    order_total: Optional[Decimal] = None
    currency: str = ""
    is_first_order: bool = False
    present_fields: FrozenSet[str] = frozenset()
    # an email or domain was supplied but its domain could not be parsed
    domain_unparsed: bool = False
    dropped_fields: Tuple[str, ...] = field(default=(), compare=False)

    @classmethod
    def from_payload(cls, data: Optional[Mapping[str, Any]]) -> "CheckoutContext":
        """
        Build a context from loosely-typed checkout data. Never raises:
        values that fail normalization are left empty and named in dropped_fields.
        """
        d = data if isinstance(data, Mapping) else {}
        dropped = []

        def _drop_if(key: str, raw: Any, ok: bool):
            if raw not in (None, "") and not ok:
                dropped.append(key)

        raw_email = d.get("email")
        email = normalize_email(raw_email)
        _drop_if("email", raw_email, bool(email))

        raw_domain = d.get("email_domain")
        domain = normalize_domain(raw_domain) if raw_domain else email_domain(email)
        if domain.startswith("*"):
            domain = ""
        _drop_if("email_domain", raw_domain, bool(domain))
        domain_unparsed = not domain and (_has_text(raw_domain) or _has_text(_after_at(raw_email)))

        raw_country = d.get("country_code")
        country = normalize_country(raw_country)
        _drop_if("country_code", raw_country, bool(country))

        raw_ip = d.get("ip")
        ip = parse_ip(raw_ip)
        _drop_if("ip", raw_ip, ip is not None)

        raw_total = d.get("order_total")
        total = _to_decimal(raw_total)
        _drop_if("order_total", raw_total, total is not None)

        currency = d.get("currency")
        currency = currency.strip().upper() if isinstance(currency, str) else ""

        raw_fields = d.get("present_fields") or ()
        if isinstance(raw_fields, (str, bytes)) or not hasattr(raw_fields, "__iter__"):
            dropped.append("present_fields")
            raw_fields = ()
        fields = frozenset(f for f in (normalize_field_name(x) for x in raw_fields) if f)

        return cls(
            email=email,
            country_code=country,
            ip=ip,
            email_domain=domain,
            order_total=total,
            currency=currency,
            is_first_order=d.get("is_first_order") is True,
            present_fields=fields,
            domain_unparsed=domain_unparsed,
            dropped_fields=tuple(dropped),
        )


# -----------------------------
# Evaluation output
# -----------------------------
@dataclass(frozen=True)
class Violation:
    rule_category: RuleCategory
    message: str
    target: str = VIOLATION_TARGET

    def to_dict(self) -> dict:
        return {"rule_category": self.rule_category.value, "message": self.message, "target": self.target}


@dataclass(frozen=True)
class Match:
    """A violation plus the stored rules that produced it (internal only)."""
    violation: Violation
    refs: Tuple[RuleRef, ...] = ()
