from __future__ import annotations
from decimal import Decimal
from typing import Optional, List
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String, BigInteger, Integer, DateTime, JSON, Numeric, UniqueConstraint, func, Index
)
from .database import Base

# ----------------------------
# Merchant fraud rules
# matches: advisory counter, only ever bumped by the reconciler
# ----------------------------
class EmailBlacklistRule(Base):
    __tablename__ = "email_blacklist_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shop_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="ACTIVE")
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    matches: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class GeoRuleRow(Base):
    __tablename__ = "geo_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shop_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    country_code: Mapped[str] = mapped_column(String(4), nullable=False)
    action: Mapped[str] = mapped_column(String(8), nullable=False)          # ALLOW|BLOCK
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="ACTIVE")
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    matches: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class BlockedIpRule(Base):
    __tablename__ = "blocked_ips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shop_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    value: Mapped[str] = mapped_column(String(64), nullable=False)          # address or CIDR
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="ACTIVE")
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    matches: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class DomainFilterRule(Base):
    __tablename__ = "domain_filters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shop_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)        # may start with "*."
    filter_type: Mapped[str] = mapped_column(String(16), nullable=False)    # BLACKLIST|WHITELIST
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="ACTIVE")
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    matches: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

class FirstOrderRuleRow(Base):
    __tablename__ = "first_order_rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shop_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    max_order_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2, asdecimal=True))
    currency: Mapped[Optional[str]] = mapped_column(String(8))
    required_fields: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(16), nullable=False, server_default="ACTIVE")
    position: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    matches: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

# ----------------------------
# Reconciliation receipts: one row per (attempt, rule) ever counted
# ----------------------------
class MatchReceipt(Base):
    __tablename__ = "match_receipts"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    checkout_attempt_id: Mapped[str] = mapped_column(String(128), nullable=False)
    shop_id: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    rule_id: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_at: Mapped[DateTime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("checkout_attempt_id", "category", "rule_id", name="uq_receipt_attempt_rule"),
    )

Index("ix_match_receipts_shop_id", MatchReceipt.shop_id)
