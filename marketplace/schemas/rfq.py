from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class RfqCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    category: str
    description: Optional[str] = None
    quantity: int = Field(..., ge=1)
    unit: str = Field(..., min_length=1, max_length=30)
    target_price: Decimal = Field(..., gt=0)
    max_price: Optional[Decimal] = Field(None, gt=0)
    delivery_timeline: Optional[str] = Field(None, max_length=100)
    shipping_terms: Optional[str] = Field(None, max_length=100)


class RfqResponse(BaseModel):
    id: str
    buyer_id: str
    title: str
    category: str
    description: Optional[str] = None
    quantity: int
    unit: str
    target_price: Decimal
    max_price: Optional[Decimal] = None
    delivery_timeline: Optional[str] = None
    shipping_terms: Optional[str] = None
    status: str
    matched_suppliers: List[str] = []
    quotations_count: int
    expires_at: str
    approved_at: Optional[str] = None
    closed_at: Optional[str] = None
    close_reason: Optional[str] = None
    awarded_quotation_id: Optional[str] = None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}
