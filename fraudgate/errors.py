# fraudgate/errors.py
from __future__ import annotations
from typing import Iterable


class FraudGateError(Exception):
    """Base class for errors raised by this package."""


class SnapshotTooLarge(FraudGateError):
    """
    Normalized rule count exceeds the configured ceiling.
    Fatal to the build attempt only; the previously published snapshot stays in use.
    """

    def __init__(self, merchant_id: str, rule_count: int, limit: int):
        self.merchant_id = merchant_id
        self.rule_count = rule_count
        self.limit = limit
        super().__init__(
            f"Snapshot for {merchant_id!r} has {rule_count} rules (limit {limit})"
        )


class SnapshotFormatError(FraudGateError):
    """Payload could not be decoded into a Snapshot."""


class MalformedContext(FraudGateError):
    """
    Never raised by the evaluator. Malformed checkout fields degrade to
    "no match" and are reported via CheckoutContext.dropped_fields instead.
    """


class ReconciliationDeliveryFailed(FraudGateError):
    def __init__(self, checkout_attempt_id: str, refs: Iterable, cause: Exception | None = None):
        self.checkout_attempt_id = checkout_attempt_id
        self.refs = list(refs)
        self.cause = cause
        super().__init__(
            f"Could not record {len(self.refs)} rule match(es) for attempt {checkout_attempt_id}: {cause}"
        )
