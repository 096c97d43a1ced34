# dispensary/compliance/repository.py
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload
from ..models import ComplianceRule, User, Store, Product, Order, OrderItem, UNCOUNTED_STATUSES
from .types import RuleSnapshot, Subject, StoreSnapshot, CatalogProduct, HistoricalOrderItem

def normalize_state_code(state_code: Optional[str]) -> str:
    return (state_code or "").strip().upper()

def find_rule(db: Session, state_code: str) -> Optional[RuleSnapshot]:
    row = db.execute(
        select(ComplianceRule).where(ComplianceRule.state_code == normalize_state_code(state_code))
    ).scalar_one_or_none()
    return RuleSnapshot.model_validate(row) if row else None

def find_user(db: Session, user_id: str) -> Optional[Subject]:
    row = db.get(User, user_id)
    return Subject.model_validate(row) if row else None

def find_store(db: Session, store_id: str) -> Optional[StoreSnapshot]:
    row = db.get(Store, store_id)
    return StoreSnapshot.model_validate(row) if row else None

def find_products(db: Session, product_ids: Iterable[str]) -> Dict[str, CatalogProduct]:
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    rows = db.execute(select(Product).where(Product.id.in_(ids))).scalars().all()
    return {r.id: CatalogProduct.model_validate(r) for r in rows}

def find_counted_order_items(db: Session, user_id: str,
                             start: datetime, end: datetime) -> List[HistoricalOrderItem]:
    """
    Line items of the user's orders created in [start, end), skipping cancelled
    orders. Bounds are compared as stored, so pass UTC datetimes.
    """
    stmt = (
        select(OrderItem)
        .join(Order, OrderItem.order_id == Order.id)
        .where(
            Order.user_id == user_id,
            Order.status.not_in(UNCOUNTED_STATUSES),
            Order.created_at >= start,
            Order.created_at < end,
        )
        .options(selectinload(OrderItem.product))
        .order_by(Order.created_at, OrderItem.id)
    )
    rows = db.execute(stmt).scalars().all()
    return [HistoricalOrderItem.model_validate(r) for r in rows]
