from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from .compliance.types import LineItem, Violation

class ComplianceCheckInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    store_id: str = Field(alias="storeId")
    items: List[LineItem] = Field(min_length=1)

class ComplianceCheckResponse(BaseModel):
    isValid: bool
    errors: List[Violation]

class OrderCreateInput(ComplianceCheckInput):
    payment_method: str = Field("pay_at_pickup", alias="paymentMethod")
    notes: Optional[str] = Field(None, max_length=500)
    idempotency_key: Optional[str] = Field(None, alias="idempotencyKey", max_length=128)

class OrderItemOut(BaseModel):
    productId: str
    quantity: int
    unitPrice: float
    lineTotal: float

class OrderOut(BaseModel):
    id: str
    userId: str
    storeId: str
    status: str
    paymentMethod: str
    notes: Optional[str] = None
    subtotal: float
    tax: float
    total: float
    createdAt: datetime
    items: List[OrderItemOut]
