"""
studio/results.py
-----------------
Typed results returned by every public service operation.

Each operation gets its own dataclass so callers know exactly which
fields exist; all of them share the success / message / error_kind
envelope of OperationResult.
"""
from __future__ import annotations
import enum
from dataclasses import dataclass, field, fields, is_dataclass
from decimal import Decimal
from typing import Dict, List, Optional


def _plain(value):
    """Convert Enums / Decimals / nested results into JSON-friendly values."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass
class OperationResult:
    """Uniform success/failure envelope."""
    success:    bool
    message:    str
    error_kind: Optional[str] = None          # validation | not_found | conflict | store | internal
    errors:     Dict[str, str] = field(default_factory=dict)

    @classmethod
    def failed(cls, message: str, error_kind: str, errors: Optional[dict] = None):
        return cls(success=False, message=message, error_kind=error_kind, errors=errors or {})

    def as_dict(self) -> dict:
        return _plain(self)


@dataclass
class ReferrerUpdate:
    """What happened to the referrer when a referral was created."""
    referrer_id:   int
    points_added:  int
    new_level:     object            # Tier
    level_changed: bool


@dataclass
class CompletionResult(OperationResult):
    order_id:       Optional[int] = None
    status:         Optional[str] = None
    points_awarded: int = 0
    new_level:      object = None    # Tier, set only when points were awarded
    level_changed:  bool = False


@dataclass
class BatchStatusResult(OperationResult):
    order_ids:      List[int] = field(default_factory=list)
    points_awarded: Dict[int, int] = field(default_factory=dict)   # order id -> points


@dataclass
class OrderSaveResult(OperationResult):
    order_id:       Optional[int] = None
    total:          Optional[Decimal] = None
    points_awarded: int = 0


@dataclass
class RegistrationResult(OperationResult):
    customer_id:      Optional[int] = None
    referrer_updated: Optional[ReferrerUpdate] = None


@dataclass
class CustomerUpdateResult(OperationResult):
    referrer_updated: Optional[ReferrerUpdate] = None


@dataclass
class ProductSaveResult(OperationResult):
    product_id:   Optional[int] = None
    product_code: Optional[str] = None


@dataclass
class AdjustmentResult(OperationResult):
    customer_id:   Optional[int] = None
    points:        Optional[int] = None
    points_delta:  int = 0
    new_level:     object = None
    level_changed: bool = False


@dataclass
class DetailResult(OperationResult):
    """Read operations: `data` is the JSON-ready detail payload."""
    data: Optional[dict] = None
