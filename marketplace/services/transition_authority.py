"""
Status transition authority: the only writer of status fields.

Each lifecycle is a frozen Workflow table. A Transition marked ``internal``
is only reachable by the bundle that owns it (award, expiry, auto-send),
never by a direct request.

    RFQ        pending_approval -> approved | rejected
               approved -> matched -> quoted
               matched | quoted -> closed          (award, internal)
               any open status -> closed           (expire, internal)
    Quotation  pending_review -> approved | rejected
               approved -> sent_to_buyer           (same operation as approve)
               sent_to_buyer -> accepted | rejected
    Order      confirmed -> in_production -> shipped -> delivered -> completed
               confirmed | in_production | shipped -> cancelled
    Supplier   pending -> verified | rejected
    Sample     requested -> approved_by_admin | rejected
               approved_by_admin -> shipped_by_supplier -> delivered
    Question   pending_admin -> approved_by_admin | rejected
               approved_by_admin -> sent_to_buyer  (same operation as approve)
               sent_to_buyer -> answered_by_buyer -> published   (one answer step)

Every transition writes an AuditLog row in the same transaction. Illegal
requests raise InvalidTransitionError before anything is written.

Public bundles run inside ``critical_section``; quotation and RFQ bundles
share the RFQ id as lock key so accept, review and submit never interleave.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.exceptions import InvalidStateError, InvalidTransitionError, ValidationError
from marketplace.models.order import Order
from marketplace.models.quotation import Quotation
from marketplace.models.rfq import Rfq
from marketplace.models.sample_request import SampleRequest
from marketplace.models.supplier import Supplier
from marketplace.models.supplier_question import SupplierQuestion
from marketplace.services.audit_service import record_transition
from marketplace.services.entity_store import (
    OrderStore,
    QuotationStore,
    RfqStore,
    SampleRequestStore,
    SupplierQuestionStore,
    SupplierStore,
    UserStore,
    critical_section,
)
from marketplace.services.order_materializer import materialize_once
from marketplace.services.results import returns_result
from marketplace.utils import utcnow

logger = structlog.get_logger()


@dataclass(frozen=True)
class Transition:
    from_state: str
    to_state: str
    action: str
    internal: bool = False


@dataclass(frozen=True)
class Workflow:
    entity_type: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()
    status_field: str = "status"

    def resolve(
        self, current: str, target: str, action: Optional[str] = None
    ) -> Optional[Transition]:
        for transition in self.transitions:
            if transition.from_state != current or transition.to_state != target:
                continue
            if action is None and not transition.internal:
                return transition
            if action is not None and transition.action == action:
                return transition
        return None

    def targets(self, current: str) -> tuple[str, ...]:
        return tuple(
            t.to_state for t in self.transitions
            if t.from_state == current and not t.internal
        )


RFQ_WORKFLOW = Workflow(
    entity_type="RFQ",
    initial_state="pending_approval",
    states=("pending_approval", "approved", "matched", "quoted", "closed", "rejected"),
    transitions=(
        Transition("pending_approval", "approved", "approve"),
        Transition("pending_approval", "rejected", "reject"),
        Transition("approved", "matched", "confirm_matches"),
        Transition("matched", "quoted", "quote", internal=True),
        Transition("matched", "closed", "award", internal=True),
        Transition("quoted", "closed", "award", internal=True),
        Transition("pending_approval", "closed", "expire", internal=True),
        Transition("approved", "closed", "expire", internal=True),
        Transition("matched", "closed", "expire", internal=True),
        Transition("quoted", "closed", "expire", internal=True),
    ),
    terminal_states=("closed", "rejected"),
)

QUOTATION_WORKFLOW = Workflow(
    entity_type="Quotation",
    initial_state="pending_review",
    states=("pending_review", "approved", "rejected", "sent_to_buyer", "accepted"),
    transitions=(
        Transition("pending_review", "approved", "approve"),
        Transition("pending_review", "rejected", "reject"),
        Transition("approved", "sent_to_buyer", "send_to_buyer", internal=True),
        Transition("sent_to_buyer", "accepted", "accept"),
        Transition("sent_to_buyer", "rejected", "decline"),
    ),
    terminal_states=("accepted", "rejected"),
)

ORDER_WORKFLOW = Workflow(
    entity_type="Order",
    initial_state="confirmed",
    states=("confirmed", "in_production", "shipped", "delivered", "completed", "cancelled"),
    transitions=(
        Transition("confirmed", "in_production", "start_production"),
        Transition("in_production", "shipped", "ship"),
        Transition("shipped", "delivered", "deliver"),
        Transition("delivered", "completed", "complete"),
        Transition("confirmed", "cancelled", "cancel"),
        Transition("in_production", "cancelled", "cancel"),
        Transition("shipped", "cancelled", "cancel"),
    ),
    terminal_states=("completed", "cancelled"),
)

SUPPLIER_VERIFICATION_WORKFLOW = Workflow(
    entity_type="Supplier",
    initial_state="pending",
    states=("pending", "verified", "rejected"),
    transitions=(
        Transition("pending", "verified", "verify"),
        Transition("pending", "rejected", "reject"),
    ),
    terminal_states=("verified", "rejected"),
    status_field="verification_status",
)

SAMPLE_WORKFLOW = Workflow(
    entity_type="SampleRequest",
    initial_state="requested",
    states=("requested", "approved_by_admin", "shipped_by_supplier", "delivered", "rejected"),
    transitions=(
        Transition("requested", "approved_by_admin", "approve"),
        Transition("requested", "rejected", "reject"),
        Transition("approved_by_admin", "shipped_by_supplier", "ship"),
        Transition("shipped_by_supplier", "delivered", "confirm_delivery"),
    ),
    terminal_states=("delivered", "rejected"),
)

QUESTION_WORKFLOW = Workflow(
    entity_type="SupplierQuestion",
    initial_state="pending_admin",
    states=(
        "pending_admin", "approved_by_admin", "sent_to_buyer",
        "answered_by_buyer", "published", "rejected",
    ),
    transitions=(
        Transition("pending_admin", "approved_by_admin", "approve"),
        Transition("pending_admin", "rejected", "reject"),
        Transition("approved_by_admin", "sent_to_buyer", "send_to_buyer", internal=True),
        Transition("sent_to_buyer", "answered_by_buyer", "answer"),
        Transition("answered_by_buyer", "published", "publish", internal=True),
    ),
    terminal_states=("published", "rejected"),
)

ACCEPTABLE_RFQ_STATUSES = ("matched", "quoted")


def rfq_lock_key(rfq_id: str) -> str:
    return f"rfq:{rfq_id}"


def authorize(
    workflow: Workflow, current: str, target: str, action: Optional[str] = None
) -> Transition:
    """Look up the transition or raise InvalidTransitionError. No side effects."""
    transition = workflow.resolve(current, target, action)
    if transition is not None:
        return transition

    reason = None
    if target not in workflow.states:
        reason = "unknown status"
    elif current in workflow.terminal_states:
        reason = f"'{current}' is terminal"
    elif action is None and any(
        t.from_state == current and t.to_state == target for t in workflow.transitions
    ):
        reason = "only reachable through its owning operation"
    raise InvalidTransitionError(workflow.entity_type, current, target, reason=reason)


def can_transition(
    workflow: Workflow, current: str, target: str, action: Optional[str] = None
) -> bool:
    return workflow.resolve(current, target, action) is not None


async def apply_transition(
    session: AsyncSession,
    entity: Any,
    workflow: Workflow,
    target: str,
    actor_id: Optional[str],
    action: Optional[str] = None,
    **fields: Any,
) -> Transition:
    """
    Check, write status plus bundled fields, record the audit row.

    Uses session.flush(); caller owns the transaction (and the lock).
    """
    current = getattr(entity, workflow.status_field)
    transition = authorize(workflow, current, target, action)

    setattr(entity, workflow.status_field, target)
    for key, value in fields.items():
        setattr(entity, key, value)
    entity.updated_at = utcnow()

    await record_transition(
        session,
        actor_id,
        transition.action,
        workflow.entity_type,
        entity.id,
        current,
        target,
    )
    return transition


def _release_slot(rfq: Rfq) -> None:
    # quotations_count tracks non-rejected quotations
    rfq.quotations_count = max(0, (rfq.quotations_count or 0) - 1)


@dataclass
class AcceptOutcome:
    quotation: Quotation
    rfq: Rfq
    order: Order


# --- RFQ ---------------------------------------------------------------------

@returns_result
async def review_rfq(
    session: AsyncSession, rfq_id: str, decision: str, actor_id: Optional[str] = None
) -> Rfq:
    """Admin approve/reject of a pending RFQ."""
    targets = {"approve": "approved", "reject": "rejected"}
    if decision not in targets:
        raise ValidationError(f"Unknown RFQ decision: {decision}", field="decision")

    rfqs = RfqStore(session)
    async with critical_section(session, rfq_lock_key(rfq_id)):
        rfq = await rfqs.get(rfq_id, for_update=True)
        extra = {"approved_at": utcnow()} if decision == "approve" else {}
        await apply_transition(
            session, rfq, RFQ_WORKFLOW, targets[decision], actor_id, **extra
        )

    logger.info("rfq_reviewed", rfq_id=rfq_id, decision=decision, status=rfq.status)
    return rfq


@returns_result
async def expire_rfq(
    session: AsyncSession,
    rfq_id: str,
    now: Optional[datetime] = None,
    actor_id: Optional[str] = None,
) -> Rfq:
    """Close an overdue RFQ. Already-terminal RFQs are returned untouched."""
    now = now or utcnow()
    rfqs = RfqStore(session)
    async with critical_section(session, rfq_lock_key(rfq_id)):
        rfq = await rfqs.get(rfq_id, for_update=True)
        if rfq.status in RFQ_WORKFLOW.terminal_states:
            return rfq
        if rfq.expires_at >= now:
            raise ValidationError(
                f"RFQ {rfq_id} does not expire until {rfq.expires_at.isoformat()}",
                field="expires_at",
            )
        await apply_transition(
            session, rfq, RFQ_WORKFLOW, "closed", actor_id,
            action="expire", closed_at=now, close_reason="expired",
        )

    logger.info("rfq_expired", rfq_id=rfq_id, expires_at=rfq.expires_at.isoformat())
    return rfq


# --- Quotation -----------------------------------------------------------------

@returns_result
async def review_quotation(
    session: AsyncSession,
    quotation_id: str,
    decision: str,
    actor_id: Optional[str] = None,
) -> Quotation:
    """
    Admin review. Approve sends the quotation to the buyer in the same
    step (and moves a matched RFQ to quoted); reject frees the RFQ slot.
    """
    if decision not in ("approve", "reject"):
        raise ValidationError(f"Unknown review decision: {decision}", field="decision")

    quotations = QuotationStore(session)
    rfqs = RfqStore(session)
    quotation = await quotations.get(quotation_id)

    async with critical_section(session, rfq_lock_key(quotation.rfq_id)):
        quotation = await quotations.get(quotation_id, for_update=True)
        rfq = await rfqs.get(quotation.rfq_id, for_update=True)
        now = utcnow()

        if decision == "approve":
            if rfq.status not in ACCEPTABLE_RFQ_STATUSES:
                raise InvalidStateError("RFQ", rfq.status, ACCEPTABLE_RFQ_STATUSES)
            await apply_transition(
                session, quotation, QUOTATION_WORKFLOW, "approved", actor_id,
                reviewed_at=now,
            )
            await apply_transition(
                session, quotation, QUOTATION_WORKFLOW, "sent_to_buyer", actor_id,
                action="send_to_buyer",
            )
            if rfq.status == "matched":
                await apply_transition(
                    session, rfq, RFQ_WORKFLOW, "quoted", actor_id, action="quote"
                )
        else:
            await apply_transition(
                session, quotation, QUOTATION_WORKFLOW, "rejected", actor_id,
                reviewed_at=now,
            )
            _release_slot(rfq)

    logger.info(
        "quotation_reviewed",
        quotation_id=quotation_id,
        rfq_id=rfq.id,
        decision=decision,
        status=quotation.status,
        rfq_status=rfq.status,
    )
    return quotation


@returns_result
async def decline_quotation(
    session: AsyncSession, quotation_id: str, actor_id: Optional[str] = None
) -> Quotation:
    """Buyer rejects a quotation that was sent to them."""
    quotations = QuotationStore(session)
    rfqs = RfqStore(session)
    quotation = await quotations.get(quotation_id)

    async with critical_section(session, rfq_lock_key(quotation.rfq_id)):
        quotation = await quotations.get(quotation_id, for_update=True)
        rfq = await rfqs.get(quotation.rfq_id, for_update=True)
        await apply_transition(
            session, quotation, QUOTATION_WORKFLOW, "rejected", actor_id,
            action="decline", decided_at=utcnow(),
        )
        _release_slot(rfq)

    logger.info("quotation_declined", quotation_id=quotation_id, rfq_id=rfq.id)
    return quotation


@returns_result
async def accept_quotation(
    session: AsyncSession, quotation_id: str, actor_id: Optional[str] = None
) -> AcceptOutcome:
    """
    Compound accept: quotation -> accepted, Order materialized, RFQ -> closed.

    One critical section keyed by the RFQ id. Quotation and Order writes are
    staged before the RFQ write; any failure rolls all three back. Retrying
    an accept that already went through returns the existing order.
    """
    quotations = QuotationStore(session)
    rfqs = RfqStore(session)
    orders = OrderStore(session)
    quotation = await quotations.get(quotation_id)

    async with critical_section(session, rfq_lock_key(quotation.rfq_id)):
        quotation = await quotations.get(quotation_id, for_update=True)
        rfq = await rfqs.get(quotation.rfq_id, for_update=True)

        if quotation.status == "accepted":
            existing = await orders.find_one(quotation_id=quotation.id)
            if existing is not None:
                logger.warning(
                    "duplicate_order_ignored",
                    quotation_id=quotation.id,
                    order_id=existing.id,
                )
                return AcceptOutcome(quotation=quotation, rfq=rfq, order=existing)

        authorize(QUOTATION_WORKFLOW, quotation.status, "accepted")
        if rfq.status not in ACCEPTABLE_RFQ_STATUSES:
            raise InvalidTransitionError(
                "Quotation",
                quotation.status,
                "accepted",
                reason=f"RFQ {rfq.id} is '{rfq.status}'",
            )
        already = await quotations.find_one(rfq_id=rfq.id, status="accepted")
        if already is not None:
            raise InvalidTransitionError(
                "Quotation",
                quotation.status,
                "accepted",
                reason=f"quotation {already.id} is already accepted for RFQ {rfq.id}",
            )

        now = utcnow()
        await apply_transition(
            session, quotation, QUOTATION_WORKFLOW, "accepted", actor_id,
            decided_at=now,
        )
        order = await materialize_once(session, quotation, rfq, actor_id=actor_id)
        await apply_transition(
            session, rfq, RFQ_WORKFLOW, "closed", actor_id,
            action="award",
            closed_at=now,
            close_reason="awarded",
            awarded_quotation_id=quotation.id,
        )

    logger.info(
        "quotation_accepted",
        quotation_id=quotation.id,
        rfq_id=rfq.id,
        order_id=order.id,
    )
    return AcceptOutcome(quotation=quotation, rfq=rfq, order=order)


# --- Order ---------------------------------------------------------------------

@returns_result
async def transition_order(
    session: AsyncSession,
    order_id: str,
    target: str,
    actor_id: Optional[str] = None,
    tracking_number: Optional[str] = None,
) -> Order:
    orders = OrderStore(session)
    async with critical_section(session, f"order:{order_id}"):
        order = await orders.get(order_id, for_update=True)
        extra = {}
        if tracking_number and target == "shipped":
            extra["tracking_number"] = tracking_number
        await apply_transition(session, order, ORDER_WORKFLOW, target, actor_id, **extra)

    logger.info("order_status_changed", order_id=order_id, status=order.status)
    return order


# --- Supplier verification -----------------------------------------------------

@returns_result
async def set_supplier_verification(
    session: AsyncSession,
    supplier_id: str,
    decision: str,
    actor_id: Optional[str] = None,
) -> Supplier:
    """Admin verify/reject. Mirrors the outcome onto the supplier's user."""
    targets = {"verify": "verified", "reject": "rejected"}
    if decision not in targets:
        raise ValidationError(f"Unknown verification decision: {decision}", field="decision")

    suppliers = SupplierStore(session)
    async with critical_section(session, f"supplier:{supplier_id}"):
        supplier = await suppliers.get(supplier_id, for_update=True)
        target = targets[decision]
        extra = {"verified_at": utcnow()} if target == "verified" else {}
        await apply_transition(
            session, supplier, SUPPLIER_VERIFICATION_WORKFLOW, target, actor_id, **extra
        )
        user = await UserStore(session).get(supplier.id)
        user.verification_status = target
        user.updated_at = utcnow()

    logger.info("supplier_verification_set", supplier_id=supplier_id, status=target)
    return supplier


# --- Sample requests -----------------------------------------------------------

_SAMPLE_TIMESTAMPS = {
    "approved_by_admin": "approved_at",
    "shipped_by_supplier": "shipped_at",
    "delivered": "delivered_at",
}


@returns_result
async def transition_sample(
    session: AsyncSession,
    sample_id: str,
    target: str,
    actor_id: Optional[str] = None,
    **fields: Any,
) -> SampleRequest:
    samples = SampleRequestStore(session)
    async with critical_section(session, f"sample:{sample_id}"):
        sample = await samples.get(sample_id, for_update=True)
        stamp = _SAMPLE_TIMESTAMPS.get(target)
        if stamp:
            fields[stamp] = utcnow()
        await apply_transition(session, sample, SAMPLE_WORKFLOW, target, actor_id, **fields)

    logger.info("sample_request_status_changed", sample_id=sample_id, status=sample.status)
    return sample


# --- Supplier questions --------------------------------------------------------

def question_lock_key(question_id: str) -> str:
    return f"question:{question_id}"


@returns_result
async def review_question(
    session: AsyncSession,
    question_id: str,
    decision: str,
    actor_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> SupplierQuestion:
    """
    Admin moderation. Approve forwards the question to the buyer in the same
    step; reject is terminal and keeps the question away from the buyer.
    """
    if decision not in ("approve", "reject"):
        raise ValidationError(f"Unknown question decision: {decision}", field="decision")

    questions = SupplierQuestionStore(session)
    async with critical_section(session, question_lock_key(question_id)):
        question = await questions.get(question_id, for_update=True)
        if decision == "approve":
            await apply_transition(
                session, question, QUESTION_WORKFLOW, "approved_by_admin", actor_id,
                admin_approved_at=utcnow(),
            )
            await apply_transition(
                session, question, QUESTION_WORKFLOW, "sent_to_buyer", actor_id,
                action="send_to_buyer",
            )
        else:
            await apply_transition(
                session, question, QUESTION_WORKFLOW, "rejected", actor_id,
                rejection_reason=reason,
            )

    logger.info(
        "supplier_question_reviewed",
        question_id=question_id,
        decision=decision,
        status=question.status,
    )
    return question


@returns_result
async def answer_question(
    session: AsyncSession,
    question_id: str,
    answer: str,
    actor_id: Optional[str] = None,
) -> SupplierQuestion:
    """Record the buyer's answer and publish the pair to every matched supplier."""
    questions = SupplierQuestionStore(session)
    async with critical_section(session, question_lock_key(question_id)):
        question = await questions.get(question_id, for_update=True)
        now = utcnow()
        await apply_transition(
            session, question, QUESTION_WORKFLOW, "answered_by_buyer", actor_id,
            buyer_answer=answer,
            buyer_answered_at=now,
        )
        await apply_transition(
            session, question, QUESTION_WORKFLOW, "published", actor_id,
            action="publish",
            published_at=now,
        )

    logger.info("supplier_question_answered", question_id=question_id, rfq_id=question.rfq_id)
    return question
