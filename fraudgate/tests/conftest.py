# tests/conftest.py
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fraudgate.database import Base
from fraudgate import models  # noqa: F401
from fraudgate.rules.model import (
    DomainRule,
    EmailRule,
    FilterType,
    FirstOrderRule,
    GeoAction,
    GeoRule,
    IpRule,
    RuleSet,
    RuleStatus,
)
from fraudgate.snapshot.builder import build_snapshot

SHOP = "demo.myshopify.com"
BUILT_AT = datetime(2026, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def SessionLocal(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(SessionLocal):
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def make_snapshot():
    """Build a snapshot from short-hand rule lists; ids are assigned in order."""
    def _make(*, emails=(), geo=(), ips=(), domains=(), first_order=None, shop=SHOP, max_rules=1000):
        ids = iter(range(1, 10_000))
        rs = RuleSet(
            merchant_id=shop,
            emails=tuple(EmailRule(next(ids), shop, e) for e in emails),
            geo_rules=tuple(
                GeoRule(next(ids), shop, cc, GeoAction(action), RuleStatus(status))
                for cc, action, status in geo
            ),
            ips=tuple(IpRule(next(ids), shop, v) for v in ips),
            domains=tuple(
                DomainRule(next(ids), shop, d, FilterType(ft), RuleStatus(status))
                for d, ft, status in domains
            ),
            first_order=(
                (FirstOrderRule(
                    next(ids), shop,
                    max_order_value=Decimal(first_order["max"]) if first_order.get("max") else None,
                    required_fields=frozenset(first_order.get("fields", ())),
                    currency=first_order.get("currency"),
                ),)
                if first_order else ()
            ),
        )
        return build_snapshot(shop, rs, max_rules=max_rules, built_at=BUILT_AT)

    return _make
