from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from ..config import settings
from ..database import get_db
from ..models import Order, OrderItem, OrderStatus, Product, User
from ..schemas import OrderCreateInput, OrderOut, OrderItemOut
from ..compliance.engine import check_order_compliance
from ..utils.clock import utcnow
from ..utils.logging import logger

router = APIRouter(prefix="/v1", tags=["orders"])

ALLOWED_PAYMENTS = {"card", "pay_at_pickup"}
CANCELLABLE = {OrderStatus.CREATED, OrderStatus.PENDING}

def _order_out(o: Order) -> dict:
    return OrderOut(
        id=o.id,
        userId=o.user_id,
        storeId=o.store_id,
        status=o.status.value,
        paymentMethod=o.payment_method,
        notes=o.notes,
        subtotal=o.subtotal,
        tax=o.tax,
        total=o.total,
        createdAt=o.created_at,
        items=[OrderItemOut(productId=i.product_id, quantity=i.quantity,
                            unitPrice=i.unit_price, lineTotal=i.line_total) for i in o.items],
    ).model_dump(mode="json")

def _find_by_key(db: Session, user_id: str, key: str):
    return db.execute(
        select(Order).where(Order.user_id == user_id, Order.idempotency_key == key)
    ).scalar_one_or_none()

def _replay(o: Order) -> JSONResponse:
    return JSONResponse(status_code=200, content={"order": _order_out(o), "idempotent": True})

def _owned_order(db: Session, order_id: str, user_id: str) -> Order:
    o = db.get(Order, order_id)
    if not o:
        raise HTTPException(status_code=404, detail="Order not found")
    if o.user_id != user_id:
        raise HTTPException(status_code=403, detail="No access to order")
    return o

@router.post("/orders", status_code=201)
def create_order(payload: OrderCreateInput, db: Session = Depends(get_db), now: datetime = Depends(utcnow)):
    if payload.payment_method not in ALLOWED_PAYMENTS:
        raise HTTPException(status_code=400, detail="invalid payment method")

    key = payload.idempotency_key
    try:
        # serialize checkouts per user so the daily total can't be raced (no-op on sqlite)
        db.execute(select(User.id).where(User.id == payload.user_id).with_for_update())

        if key:
            existing = _find_by_key(db, payload.user_id, key)
            if existing:
                resp = _replay(existing)
                db.rollback()
                return resp

        result = check_order_compliance(db, payload.user_id, payload.store_id, payload.items, now=now)
        if not result.is_valid:
            db.rollback()
            logger.info("Order rejected for user %s: %s", payload.user_id, result.codes())
            return JSONResponse(status_code=400, content={
                "error": "compliance_violation",
                "message": "Order violates compliance requirements",
                "violations": [v.model_dump() for v in result.errors],
            })

        ids = {i.product_id for i in payload.items}
        products = {p.id: p for p in db.execute(select(Product).where(Product.id.in_(ids))).scalars()}
        missing = sorted(ids - products.keys())
        if missing:
            db.rollback()
            return JSONResponse(status_code=400, content={"error": "unknown_product", "productIds": missing})

        order = Order(
            user_id=payload.user_id,
            store_id=payload.store_id,
            status=OrderStatus.CREATED,
            payment_method=payload.payment_method,
            notes=payload.notes,
            idempotency_key=key,
            created_at=now,
        )
        for li in payload.items:
            price = products[li.product_id].default_price
            order.items.append(OrderItem(product_id=li.product_id, quantity=li.quantity,
                                         unit_price=price, line_total=price * li.quantity))
        order.subtotal = round(sum(i.line_total for i in order.items), 2)
        order.tax = round(order.subtotal * settings.TAX_RATE, 2)
        order.total = round(order.subtotal + order.tax, 2)
        db.add(order)
        db.commit()
    except IntegrityError:
        db.rollback()
        # a concurrent request with the same key won the insert
        existing = _find_by_key(db, payload.user_id, key) if key else None
        if existing is None:
            raise
        return _replay(existing)
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Order %s created for user %s (total=%.2f)", order.id, order.user_id, order.total)
    return {"order": _order_out(order)}

@router.get("/orders")
def list_orders(db: Session = Depends(get_db),
                user_id: str = Query(..., alias="userId"),
                status: OrderStatus | None = Query(None),
                page: int = Query(1, ge=1),
                limit: int = Query(24, ge=1, le=100)):
    stmt = select(Order).where(Order.user_id == user_id).order_by(desc(Order.created_at), desc(Order.id))
    if status: stmt = stmt.where(Order.status == status)
    # one extra row tells us whether another page exists
    rows = db.execute(stmt.offset((page - 1) * limit).limit(limit + 1)).scalars().all()
    has_more = len(rows) > limit
    return {
        "orders": [_order_out(o) for o in rows[:limit]],
        "pagination": {"page": page, "limit": limit, "nextPage": page + 1 if has_more else None},
    }

@router.get("/orders/{order_id}")
def get_order(order_id: str, user_id: str = Query(..., alias="userId"), db: Session = Depends(get_db)):
    return {"order": _order_out(_owned_order(db, order_id, user_id))}

@router.put("/orders/{order_id}/cancel")
def cancel_order(order_id: str, user_id: str = Query(..., alias="userId"), db: Session = Depends(get_db)):
    o = _owned_order(db, order_id, user_id)
    if o.status not in CANCELLABLE:
        raise HTTPException(status_code=400, detail="cannot cancel")
    o.status = OrderStatus.CANCELLED
    db.commit()
    logger.info("Order %s cancelled by user %s", o.id, user_id)
    return {"order": _order_out(o), "message": "Order cancelled"}
