from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from marketplace.schemas.order import OrderResponse


class QuotationCreate(BaseModel):
    rfq_id: str
    quoted_price: Decimal = Field(..., gt=0)
    moq: int = Field(..., ge=1)
    validity_days: int = Field(..., ge=1)
    lead_time: Optional[str] = Field(None, max_length=100)
    payment_terms: Optional[str] = Field(None, max_length=200)
    shipping_terms: Optional[str] = Field(None, max_length=100)
    quality_guarantee: bool = False
    sample_available: bool = False
    notes: Optional[str] = None


class QuotationRevise(BaseModel):
    quoted_price: Optional[Decimal] = Field(None, gt=0)
    moq: Optional[int] = Field(None, ge=1)
    validity_days: Optional[int] = Field(None, ge=1)
    lead_time: Optional[str] = Field(None, max_length=100)
    payment_terms: Optional[str] = Field(None, max_length=200)
    shipping_terms: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class QuotationResponse(BaseModel):
    id: str
    rfq_id: str
    supplier_id: str
    quoted_price: Decimal
    moq: int
    total_value: Decimal
    lead_time: Optional[str] = None
    payment_terms: Optional[str] = None
    shipping_terms: Optional[str] = None
    validity_days: int
    quality_guarantee: bool
    sample_available: bool
    notes: Optional[str] = None
    status: str
    submitted_at: str
    reviewed_at: Optional[str] = None
    decided_at: Optional[str] = None

    model_config = {"from_attributes": True}


class BuyerDecisionResponse(BaseModel):
    quotation: QuotationResponse
    order: Optional[OrderResponse] = None
