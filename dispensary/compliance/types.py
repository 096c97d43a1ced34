# dispensary/compliance/types.py
"""
Typed snapshots of the records the compliance engine reads.

ORM rows are converted into these before any arithmetic happens, so a
missing column shows up as a validation error at the boundary rather
than as a silent None inside the dosage sums.
"""
from __future__ import annotations
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

# -----------------------------
# Violation codes (stable, consumed by the mobile client)
# -----------------------------
USER_NOT_FOUND = "USER_NOT_FOUND"
STORE_STATE_UNKNOWN = "STORE_STATE_UNKNOWN"
AGE_NOT_VERIFIED = "AGE_NOT_VERIFIED"
UNDERAGE = "UNDERAGE"
DATE_OF_BIRTH_MISSING = "DATE_OF_BIRTH_MISSING"
DAILY_THC_LIMIT_EXCEEDED = "DAILY_THC_LIMIT_EXCEEDED"

VIOLATION_CODES = frozenset({
    USER_NOT_FOUND,
    STORE_STATE_UNKNOWN,
    AGE_NOT_VERIFIED,
    UNDERAGE,
    DATE_OF_BIRTH_MISSING,
    DAILY_THC_LIMIT_EXCEEDED,
})

_snapshot = ConfigDict(frozen=True, from_attributes=True)

class RuleSnapshot(BaseModel):
    model_config = _snapshot

    state_code: str
    min_age: int
    max_daily_thc_mg: Optional[float] = None
    must_verify_age: bool

class Subject(BaseModel):
    model_config = _snapshot

    id: str
    date_of_birth: Optional[date] = None
    age_verified: bool = False

class StoreSnapshot(BaseModel):
    model_config = _snapshot

    id: str
    state_code: Optional[str] = None
    timezone: Optional[str] = None

class CatalogProduct(BaseModel):
    model_config = _snapshot

    id: str
    thc_mg_per_unit: Optional[float] = None
    thc_percent: Optional[float] = None

    def thc_mg(self) -> float:
        """THC per unit; flower without a per-unit figure is 1g at thc_percent."""
        if self.thc_mg_per_unit:
            return float(self.thc_mg_per_unit)
        if self.thc_percent:
            return self.thc_percent / 100 * 1000
        return 0.0

class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_id: str = Field(alias="productId")
    quantity: int = Field(gt=0)

class HistoricalOrderItem(BaseModel):
    model_config = _snapshot

    order_id: str
    product_id: str
    quantity: int
    product: Optional[CatalogProduct] = None

class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    field: Optional[str] = None

    @field_validator("code")
    @classmethod
    def _known_code(cls, v: str) -> str:
        if v not in VIOLATION_CODES:
            raise ValueError(f"unknown violation code {v!r}")
        return v

class ComplianceResult(BaseModel):
    is_valid: bool = Field(serialization_alias="isValid")
    errors: List[Violation] = Field(default_factory=list)

    @classmethod
    def from_violations(cls, violations: List[Violation]) -> "ComplianceResult":
        return cls(is_valid=not violations, errors=list(violations))

    def codes(self) -> List[str]:
        return [v.code for v in self.errors]
