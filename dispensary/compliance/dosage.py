# dispensary/compliance/dosage.py
from __future__ import annotations
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, Iterable, List, NamedTuple, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from sqlalchemy.orm import Session
from ..utils.logging import logger
from .repository import find_products, find_counted_order_items
from .types import (
    CatalogProduct, HistoricalOrderItem, LineItem, RuleSnapshot, Violation,
    DAILY_THC_LIMIT_EXCEEDED,
)

class InvalidTimezoneError(Exception):
    """A configured timezone name that zoneinfo cannot resolve. Treated as misconfiguration, not a violation."""

    def __init__(self, tz_name: str):
        super().__init__(f"unknown timezone {tz_name!r}")
        self.tz_name = tz_name

class DayWindow(NamedTuple):
    """Half-open [start, end) in UTC covering one local calendar day."""
    day: date
    start: datetime
    end: datetime

class DosageSummary(NamedTuple):
    requested_mg: float
    consumed_mg: float
    limit_mg: Optional[float]

    @property
    def total_mg(self) -> float:
        return self.requested_mg + self.consumed_mg

    @property
    def remaining_mg(self) -> Optional[float]:
        if self.limit_mg is None:
            return None
        return max(0.0, self.limit_mg - self.consumed_mg)

def day_window(now: datetime, tz_name: str) -> DayWindow:
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(tz_name) from exc
    local_day = now.astimezone(tz).date()
    # build both ends from wall-clock midnight so DST days are 23h/25h long
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
    return DayWindow(local_day, start.astimezone(timezone.utc), end.astimezone(timezone.utc))

def _mg(value: float) -> str:
    return f"{value:.2f}".rstrip("0").rstrip(".")

def requested_thc_mg(items: Iterable[LineItem], products: Dict[str, CatalogProduct]) -> float:
    total = 0.0
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            # catalog integrity is not this check's concern
            logger.warning("Product %s not found; counting 0mg THC", item.product_id)
            continue
        total += product.thc_mg() * item.quantity
    return total

def consumed_thc_mg(history: Iterable[HistoricalOrderItem]) -> float:
    return sum((h.product.thc_mg() * h.quantity for h in history if h.product is not None), 0.0)

def summarize_dosage(db: Session, user_id: str, items: List[LineItem],
                     rule: Optional[RuleSnapshot], window: DayWindow) -> DosageSummary:
    products = find_products(db, [i.product_id for i in items])
    history = find_counted_order_items(db, user_id, window.start, window.end)
    return DosageSummary(
        requested_mg=requested_thc_mg(items, products),
        consumed_mg=consumed_thc_mg(history),
        limit_mg=rule.max_daily_thc_mg if rule else None,
    )

def compute_dosage(db: Session, user_id: str, store_id: str, items: List[LineItem],
                   rule: Optional[RuleSnapshot], window: DayWindow) -> List[Violation]:
    """
    Daily THC cap check: this order plus the user's counted orders for the
    window's day must not exceed rule.max_daily_thc_mg. Exactly at the cap passes.
    """
    if rule is None or rule.max_daily_thc_mg is None:
        return []

    summary = summarize_dosage(db, user_id, items, rule, window)
    logger.debug(
        "Dosage user=%s store=%s day=%s requested=%.2f consumed=%.2f limit=%.2f",
        user_id, store_id, window.day, summary.requested_mg, summary.consumed_mg, rule.max_daily_thc_mg,
    )
    if summary.total_mg > rule.max_daily_thc_mg:
        return [Violation(
            code=DAILY_THC_LIMIT_EXCEEDED,
            message=(
                f"This order ({_mg(summary.requested_mg)}mg THC) would exceed the daily THC limit of "
                f"{_mg(rule.max_daily_thc_mg)}mg. You have already purchased {_mg(summary.consumed_mg)}mg today "
                f"and have {_mg(summary.remaining_mg)}mg remaining."
            ),
            field="thcLimit",
        )]
    return []
