from typing import Optional
from pydantic import BaseModel, Field


class QuestionCreate(BaseModel):
    rfq_id: str
    question: str = Field(..., min_length=1, max_length=2000)


class QuestionAnswer(BaseModel):
    answer: str = Field(..., min_length=1, max_length=2000)


class QuestionResponse(BaseModel):
    id: str
    rfq_id: str
    supplier_id: str
    question: str
    status: str
    visible_to_all: bool
    admin_approved_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    buyer_answer: Optional[str] = None
    buyer_answered_at: Optional[str] = None
    published_at: Optional[str] = None
    created_at: str

    model_config = {"from_attributes": True}
