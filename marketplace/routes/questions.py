"""
RFQ questions API: /api/v1/questions

Suppliers ask, admins moderate, the RFQ owner answers and publishes.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.database import get_db
from marketplace.middleware.auth import get_current_user
from marketplace.middleware.authorization import require_roles
from marketplace.models.supplier_question import SupplierQuestion
from marketplace.schemas.common import DecisionRequest, PaginatedResponse, paginate
from marketplace.schemas.question import QuestionAnswer, QuestionCreate, QuestionResponse
from marketplace.services import question_service
from marketplace.utils import iso

router = APIRouter()


def question_to_response(q: SupplierQuestion) -> QuestionResponse:
    return QuestionResponse(
        id=q.id,
        rfq_id=q.rfq_id,
        supplier_id=q.supplier_id,
        question=q.question,
        status=q.status,
        visible_to_all=q.visible_to_all,
        admin_approved_at=iso(q.admin_approved_at),
        rejection_reason=q.rejection_reason,
        buyer_answer=q.buyer_answer,
        buyer_answered_at=iso(q.buyer_answered_at),
        published_at=iso(q.published_at),
        created_at=iso(q.created_at),
    )


@router.post("", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def ask_question(
    body: QuestionCreate,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("supplier")),
    db: AsyncSession = Depends(get_db),
):
    result = await question_service.ask_question(
        db, body.rfq_id, current_user["user_id"], body.question
    )
    return question_to_response(result.unwrap())


@router.get("", response_model=PaginatedResponse[QuestionResponse])
async def list_questions(
    rfq_id: Optional[str] = None,
    question_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Admins may omit rfq_id to work the moderation queue (?status=pending_admin)."""
    rows = await question_service.list_questions_for(
        db, current_user["user_id"], current_user["role"], rfq_id, question_status
    )
    items, meta = paginate(rows, page, limit)
    return PaginatedResponse(data=[question_to_response(q) for q in items], pagination=meta)


@router.post("/{question_id}/review", response_model=QuestionResponse)
async def review_question(
    question_id: str,
    body: DecisionRequest,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    result = await question_service.review_question(
        db, question_id, body.decision, current_user["user_id"], body.reason
    )
    return question_to_response(result.unwrap())


@router.post("/{question_id}/answer", response_model=QuestionResponse)
async def answer_question(
    question_id: str,
    body: QuestionAnswer,
    current_user: dict = Depends(get_current_user),
    _auth: None = Depends(require_roles("buyer")),
    db: AsyncSession = Depends(get_db),
):
    result = await question_service.answer_question(
        db, question_id, current_user["user_id"], body.answer
    )
    return question_to_response(result.unwrap())
