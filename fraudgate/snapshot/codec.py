# fraudgate/snapshot/codec.py
"""
Canonical JSON encoding for snapshots.

Keys are sorted and separators compact so the same rules always produce the
same bytes; decimals travel as strings and networks in with_prefixlen form.
rule_set_hash is an unkeyed content digest: it catches corrupted or stale
payloads, not a writer who recomputes it. Only the builder may write the
snapshot keys.
"""
from __future__ import annotations
import hashlib
import ipaddress
import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from ..errors import SnapshotFormatError
from ..rules.model import (
    SNAPSHOT_VERSION,
    DomainEntry,
    EmailEntry,
    FilterType,
    FirstOrderConstraint,
    GeoAction,
    GeoEntry,
    IpEntry,
    Snapshot,
)


def _canonical(obj: Any) -> bytes:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _first_order_dict(c: Optional[FirstOrderConstraint]) -> Optional[Dict[str, Any]]:
    if c is None:
        return None
    return {
        "rule_id": c.rule_id,
        "max_order_value": str(c.max_order_value) if c.max_order_value is not None else None,
        "required_fields": list(c.required_fields),
        "currency": c.currency,
    }


def rule_sections(
    email_blacklist, geo_rules, blocked_ips, domain_filters, first_order_rules
) -> Dict[str, Any]:
    return {
        "email_blacklist": [{"rule_id": e.rule_id, "email": e.email} for e in email_blacklist],
        "geo_rules": [
            {"rule_id": g.rule_id, "country_code": g.country_code, "action": g.action.value}
            for g in geo_rules
        ],
        "blocked_ips": [{"rule_id": i.rule_id, "network": i.network.with_prefixlen} for i in blocked_ips],
        "domain_filters": [
            {"rule_id": d.rule_id, "domain": d.domain, "filter_type": d.filter_type.value}
            for d in domain_filters
        ],
        "first_order_rules": _first_order_dict(first_order_rules),
    }


def compute_rule_set_hash(merchant_id: str, sections: Dict[str, Any]) -> str:
    h = hashlib.sha256()
    h.update(_canonical({"version": SNAPSHOT_VERSION, "merchant_id": merchant_id, **sections}))
    return h.hexdigest()


def to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    out = rule_sections(
        snapshot.email_blacklist,
        snapshot.geo_rules,
        snapshot.blocked_ips,
        snapshot.domain_filters,
        snapshot.first_order_rules,
    )
    out.update({
        "version": snapshot.version,
        "built_at": snapshot.built_at.isoformat(),
        "merchant_id": snapshot.merchant_id,
        "rule_set_hash": snapshot.rule_set_hash,
    })
    return out


def dumps(snapshot: Snapshot) -> bytes:
    return _canonical(to_dict(snapshot))


def from_dict(data: Dict[str, Any]) -> Snapshot:
    if not isinstance(data, dict):
        raise SnapshotFormatError("snapshot payload must be an object")
    version = data.get("version")
    if version != SNAPSHOT_VERSION:
        raise SnapshotFormatError(f"unsupported snapshot version {version!r}")
    try:
        fo = data.get("first_order_rules")
        first_order = None
        if fo is not None:
            mov = fo.get("max_order_value")
            first_order = FirstOrderConstraint(
                rule_id=int(fo["rule_id"]),
                max_order_value=Decimal(mov) if mov is not None else None,
                required_fields=tuple(fo.get("required_fields") or ()),
                currency=fo.get("currency"),
            )
        return Snapshot(
            version=version,
            built_at=datetime.fromisoformat(data["built_at"]),
            merchant_id=data["merchant_id"],
            rule_set_hash=data["rule_set_hash"],
            email_blacklist=tuple(
                EmailEntry(rule_id=int(e["rule_id"]), email=e["email"]) for e in data["email_blacklist"]
            ),
            geo_rules=tuple(
                GeoEntry(rule_id=int(g["rule_id"]), country_code=g["country_code"], action=GeoAction(g["action"]))
                for g in data["geo_rules"]
            ),
            blocked_ips=tuple(
                IpEntry(rule_id=int(i["rule_id"]), network=ipaddress.ip_network(i["network"]))
                for i in data["blocked_ips"]
            ),
            domain_filters=tuple(
                DomainEntry(rule_id=int(d["rule_id"]), domain=d["domain"], filter_type=FilterType(d["filter_type"]))
                for d in data["domain_filters"]
            ),
            first_order_rules=first_order,
        )
    except (KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as e:
        raise SnapshotFormatError(f"malformed snapshot payload: {e}") from e


def loads(raw: bytes | str) -> Snapshot:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise SnapshotFormatError(f"snapshot payload is not JSON: {e}") from e
    snapshot = from_dict(data)
    if not verify(snapshot):
        raise SnapshotFormatError(f"rule_set_hash mismatch for merchant {snapshot.merchant_id!r}")
    return snapshot


def verify(snapshot: Snapshot) -> bool:
    """True if rule_set_hash still matches the snapshot's rule content."""
    sections = rule_sections(
        snapshot.email_blacklist,
        snapshot.geo_rules,
        snapshot.blocked_ips,
        snapshot.domain_filters,
        snapshot.first_order_rules,
    )
    return compute_rule_set_hash(snapshot.merchant_id, sections) == snapshot.rule_set_hash
