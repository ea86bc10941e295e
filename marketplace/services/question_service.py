"""
Supplier questions on an RFQ, moderated by an admin and answered by the buyer.

  ask      matched supplier -> pending_admin
  review   admin approve (-> sent_to_buyer) | reject
  answer   RFQ owner answers a sent_to_buyer question; it is published at once

Visibility: admins see every question; the RFQ owner sees what reached them
(sent_to_buyer onward); a matched supplier sees its own questions plus every
published one.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from marketplace.models.supplier_question import SupplierQuestion
from marketplace.services.audit_service import record_transition
from marketplace.services.entity_store import (
    RfqStore,
    SupplierQuestionStore,
    SupplierStore,
    critical_section,
)
from marketplace.services.results import OperationResult, returns_result
from marketplace.services import transition_authority as authority

logger = structlog.get_logger()

MAX_TEXT_LENGTH = 2000
OPEN_FOR_QUESTIONS = ("matched", "quoted")
BUYER_VISIBLE_STATUSES = ("sent_to_buyer", "answered_by_buyer", "published")


def _clean_text(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required", field=field)
    if len(text) > MAX_TEXT_LENGTH:
        raise ValidationError(
            f"{field} must be at most {MAX_TEXT_LENGTH} characters",
            field=field,
            maximum=MAX_TEXT_LENGTH,
        )
    return text


@returns_result
async def ask_question(
    session: AsyncSession, rfq_id: str, supplier_id: str, question: str
) -> SupplierQuestion:
    text = _clean_text(question, "question")

    supplier = await SupplierStore(session).get(supplier_id)
    if supplier.verification_status != "verified":
        raise InvalidStateError("Supplier", supplier.verification_status, ("verified",))

    rfq = await RfqStore(session).get(rfq_id)
    if rfq.status not in OPEN_FOR_QUESTIONS:
        raise InvalidStateError("RFQ", rfq.status, OPEN_FOR_QUESTIONS)
    if supplier_id not in (rfq.matched_suppliers or []):
        raise PermissionDeniedError(f"Supplier {supplier_id} was not matched to RFQ {rfq_id}")

    async with critical_section(session, authority.rfq_lock_key(rfq_id)):
        created = await SupplierQuestionStore(session).create(
            rfq_id=rfq_id,
            supplier_id=supplier_id,
            question=text,
            status=authority.QUESTION_WORKFLOW.initial_state,
        )
        await record_transition(
            session, supplier_id, "ask", "SupplierQuestion", created.id, None, created.status
        )

    logger.info("supplier_question_asked", question_id=created.id, rfq_id=rfq_id)
    return created


async def review_question(
    session: AsyncSession,
    question_id: str,
    decision: str,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> OperationResult[SupplierQuestion]:
    """Admin moderation: approve forwards to the buyer, reject is terminal."""
    return await authority.review_question(session, question_id, decision, actor_id, reason)


@returns_result
async def answer_question(
    session: AsyncSession, question_id: str, buyer_id: str, answer: str
) -> SupplierQuestion:
    text = _clean_text(answer, "answer")
    question = await SupplierQuestionStore(session).get(question_id)
    rfq = await RfqStore(session).get(question.rfq_id)
    if rfq.buyer_id != buyer_id:
        raise PermissionDeniedError("Only the RFQ owner can answer its questions")
    return await authority.answer_question(session, question_id, text, buyer_id)


async def list_questions_for(
    session: AsyncSession,
    viewer_id: str,
    role: str,
    rfq_id: Optional[str] = None,
    status: Optional[str] = None,
) -> list[SupplierQuestion]:
    """Questions the viewer may read, newest first. Raises PermissionDeniedError."""
    questions = SupplierQuestionStore(session)
    filters = {}
    if rfq_id:
        filters["rfq_id"] = rfq_id
    if status:
        filters["status"] = status

    if role == "admin":
        return await questions.list(**filters)

    if not rfq_id:
        raise ValidationError("rfq_id is required", field="rfq_id")
    rfq = await RfqStore(session).get(rfq_id)

    if role == "buyer":
        if rfq.buyer_id != viewer_id:
            raise PermissionDeniedError("Only the RFQ owner can read its questions")
        rows = await questions.list(**filters)
        return [q for q in rows if q.status in BUYER_VISIBLE_STATUSES]

    if viewer_id not in (rfq.matched_suppliers or []):
        raise PermissionDeniedError(f"Supplier {viewer_id} was not matched to RFQ {rfq_id}")
    rows = await questions.list(**filters)
    return [q for q in rows if q.supplier_id == viewer_id or q.visible_to_all]
