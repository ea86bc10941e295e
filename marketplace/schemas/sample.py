from typing import Optional
from pydantic import BaseModel, Field


class SampleRequestCreate(BaseModel):
    quotation_id: str
    delivery_address: Optional[str] = None


class SampleShip(BaseModel):
    courier_service: str = Field(..., min_length=1, max_length=100)
    tracking_number: str = Field(..., min_length=1, max_length=100)


class SampleRequestResponse(BaseModel):
    id: str
    rfq_id: str
    quotation_id: str
    buyer_id: str
    supplier_id: str
    delivery_address: Optional[str] = None
    courier_service: Optional[str] = None
    tracking_number: Optional[str] = None
    status: str
    approved_at: Optional[str] = None
    shipped_at: Optional[str] = None
    delivered_at: Optional[str] = None
    created_at: str

    model_config = {"from_attributes": True}
