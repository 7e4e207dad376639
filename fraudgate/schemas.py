
from pydantic import BaseModel, Field
from typing import Any, Optional, List
from datetime import datetime

# Only keep schemas used in backend endpoints
class CheckoutInput(BaseModel):
    shop_id: str
    checkout_attempt_id: str
    # context fields stay loose; CheckoutContext.from_payload normalizes them
    # and records anything unusable in dropped_fields
    email: Any = None
    email_domain: Any = None
    country_code: Any = None
    ip: Any = None
    # send as a string ("100.01") to keep exact decimal precision
    order_total: Any = None
    currency: Any = None
    is_first_order: Any = False
    present_fields: Any = None

class ViolationOut(BaseModel):
    rule_category: str
    message: str
    target: str

class EvaluateResponse(BaseModel):
    ok: bool
    violations: List[ViolationOut] = Field(default_factory=list)
    rule_set_hash: Optional[str] = None

class SnapshotInfo(BaseModel):
    shop_id: str
    version: int
    built_at: datetime
    rule_set_hash: str
    rule_count: int
    stale: bool = False
