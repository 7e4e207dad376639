# tests/test_snapshot.py
import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from fraudgate.errors import SnapshotFormatError, SnapshotTooLarge
from fraudgate.rules.model import (
    EmailRule,
    FirstOrderRule,
    GeoAction,
    GeoRule,
    IpRule,
    RuleSet,
    RuleStatus,
)
from fraudgate.snapshot import codec
from fraudgate.snapshot.builder import build_snapshot
from fraudgate.snapshot.transport import InMemorySnapshotTransport, is_stale

from .conftest import SHOP


def _rule_set():
    return RuleSet(
        merchant_id=SHOP,
        emails=(
            EmailRule(1, SHOP, "Fraud@Evil.com"),
            EmailRule(2, SHOP, "fraud@evil.com "),
            EmailRule(3, SHOP, "abc@test.com"),
            EmailRule(4, SHOP, "off@test.com", RuleStatus.INACTIVE),
            EmailRule(5, SHOP, "not-an-email"),
        ),
        geo_rules=(
            GeoRule(6, SHOP, "us", GeoAction.BLOCK),
            GeoRule(7, SHOP, "ca", GeoAction.ALLOW, RuleStatus.INACTIVE),
            GeoRule(8, SHOP, "US", GeoAction.ALLOW),
        ),
        ips=(
            IpRule(9, SHOP, "10.0.0.0/8"),
            IpRule(10, SHOP, "10.1.2.3/8"),
            IpRule(11, SHOP, "1.1.1.1"),
        ),
        first_order=(
            FirstOrderRule(12, SHOP, max_order_value=Decimal("99.99"), required_fields=frozenset({"Phone"}),
                           status=RuleStatus.INACTIVE),
            FirstOrderRule(13, SHOP, max_order_value=Decimal("100.00")),
        ),
    )


def test_builder_filters_dedupes_and_keeps_order():
    snap = build_snapshot(SHOP, _rule_set(), max_rules=100)
    assert [(e.rule_id, e.email) for e in snap.email_blacklist] == [(3, "abc@test.com"), (1, "fraud@evil.com")]
    assert [(g.rule_id, g.country_code, g.action) for g in snap.geo_rules] == [
        (6, "US", GeoAction.BLOCK), (8, "US", GeoAction.ALLOW),
    ]
    assert [(i.rule_id, str(i.network)) for i in snap.blocked_ips] == [(11, "1.1.1.1/32"), (9, "10.0.0.0/8")]
    assert snap.first_order_rules.rule_id == 13
    assert snap.rule_count == 7


def test_builder_skips_foreign_merchant_rules():
    rs = RuleSet(merchant_id=SHOP, emails=(EmailRule(1, "other.myshopify.com", "a@b.com"),))
    assert build_snapshot(SHOP, rs, max_rules=10).email_blacklist == ()


def test_snapshot_too_large_is_not_truncated():
    rs = RuleSet(merchant_id=SHOP, emails=tuple(EmailRule(i, SHOP, f"u{i}@x.com") for i in range(11)))
    with pytest.raises(SnapshotTooLarge) as exc:
        build_snapshot(SHOP, rs, max_rules=10)
    assert exc.value.rule_count == 11
    assert exc.value.limit == 10
    # inactive and duplicate rules do not count towards the ceiling
    rs = RuleSet(merchant_id=SHOP, emails=rs.emails[:10] + (EmailRule(99, SHOP, "u0@x.com"),))
    assert build_snapshot(SHOP, rs, max_rules=10).rule_count == 10


def test_rebuild_is_byte_identical_except_built_at():
    a = build_snapshot(SHOP, _rule_set(), max_rules=100, built_at=datetime(2026, 1, 1, tzinfo=timezone.utc))
    b = build_snapshot(SHOP, _rule_set(), max_rules=100, built_at=datetime(2026, 6, 1, tzinfo=timezone.utc))
    assert a.rule_set_hash == b.rule_set_hash
    da, db_ = json.loads(codec.dumps(a)), json.loads(codec.dumps(b))
    assert da.pop("built_at") != db_.pop("built_at")
    assert json.dumps(da, sort_keys=True) == json.dumps(db_, sort_keys=True)

    same = build_snapshot(SHOP, _rule_set(), max_rules=100, built_at=a.built_at)
    assert codec.dumps(same) == codec.dumps(a)


def test_hash_changes_with_rules():
    a = build_snapshot(SHOP, _rule_set(), max_rules=100)
    rs = _rule_set()
    changed = RuleSet(merchant_id=SHOP, emails=rs.emails, geo_rules=tuple(reversed(rs.geo_rules)),
                      ips=rs.ips, first_order=rs.first_order)
    assert build_snapshot(SHOP, changed, max_rules=100).rule_set_hash != a.rule_set_hash


def test_codec_round_trip_is_lossless():
    snap = build_snapshot(SHOP, _rule_set(), max_rules=100)
    back = codec.loads(codec.dumps(snap))
    assert back == snap
    assert back.first_order_rules.max_order_value == Decimal("100.00")


def test_codec_rejects_hash_mismatch_and_unknown_version():
    raw = json.loads(codec.dumps(build_snapshot(SHOP, _rule_set(), max_rules=100)))
    edited = dict(raw, email_blacklist=[])
    with pytest.raises(SnapshotFormatError):
        codec.loads(json.dumps(edited))
    with pytest.raises(SnapshotFormatError):
        codec.loads(json.dumps(dict(raw, version=99)))
    with pytest.raises(SnapshotFormatError):
        codec.loads(b"{not json")


def test_in_memory_transport_and_staleness():
    t = InMemorySnapshotTransport()
    assert t.fetch_latest(SHOP) is None
    old = build_snapshot(SHOP, _rule_set(), max_rules=100)
    t.publish(SHOP, old)
    assert t.fetch_latest(SHOP) == old
    assert not is_stale(old, t.latest_hash(SHOP))

    newer = build_snapshot(SHOP, RuleSet(merchant_id=SHOP), max_rules=100)
    t.publish(SHOP, newer)
    assert is_stale(old, t.latest_hash(SHOP))
    assert not is_stale(old, None)
