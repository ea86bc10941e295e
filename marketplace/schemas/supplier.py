from typing import List, Optional
from pydantic import BaseModel, Field


class SupplierCreate(BaseModel):
    company_name: str = Field(..., min_length=1, max_length=200)
    country: Optional[str] = Field(None, max_length=100)
    product_categories: List[str] = Field(..., min_length=1)
    certifications: List[str] = []
    years_in_business: int = Field(0, ge=0)


class SupplierUpdate(BaseModel):
    company_name: Optional[str] = Field(None, min_length=1, max_length=200)
    country: Optional[str] = Field(None, max_length=100)
    product_categories: Optional[List[str]] = Field(None, min_length=1)
    certifications: Optional[List[str]] = None
    years_in_business: Optional[int] = Field(None, ge=0)


class SupplierResponse(BaseModel):
    id: str
    company_name: str
    country: Optional[str] = None
    product_categories: List[str] = []
    certifications: List[str] = []
    years_in_business: int
    verification_status: str
    verified_at: Optional[str] = None
    created_at: str

    model_config = {"from_attributes": True}


class SupplierMatchResponse(BaseModel):
    supplier_id: str
    company_name: str
    country: Optional[str] = None
    match_score: int
    years_in_business: int
    certifications: List[str] = []
    product_categories: List[str] = []


class ConfirmMatchesRequest(BaseModel):
    supplier_ids: Optional[List[str]] = None
