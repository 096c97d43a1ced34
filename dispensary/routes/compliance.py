from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ..database import get_db
from ..schemas import ComplianceCheckInput, ComplianceCheckResponse
from ..compliance.engine import check_order_compliance
from ..utils.clock import utcnow

router = APIRouter(prefix="/v1/compliance", tags=["compliance"])

@router.post("/check", response_model=ComplianceCheckResponse)
def check(payload: ComplianceCheckInput, db: Session = Depends(get_db), now: datetime = Depends(utcnow)):
    """
    Dry run of the checkout gate so the client can warn before placing an order.
    Nothing is written.
    """
    result = check_order_compliance(db, payload.user_id, payload.store_id, payload.items, now=now)
    return result.model_dump(by_alias=True)
