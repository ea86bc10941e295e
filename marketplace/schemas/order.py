from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class OrderAdvance(BaseModel):
    status: str = Field(..., min_length=1)
    tracking_number: Optional[str] = Field(None, max_length=100)


class OrderResponse(BaseModel):
    id: str
    rfq_id: str
    quotation_id: str
    buyer_id: str
    supplier_id: str
    order_value: Decimal
    quantity: int
    unit_price: Decimal
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    status: str
    expected_delivery: str
    payment_received: Decimal
    payment_pending: Decimal
    tracking_number: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}
