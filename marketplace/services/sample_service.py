"""
Sample requests: a buyer asks for a physical sample against a quotation.

  requested -> approved_by_admin | rejected     admin
  approved_by_admin -> shipped_by_supplier      supplier, courier + tracking required
  shipped_by_supplier -> delivered              buyer
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.exceptions import InvalidStateError, PermissionDeniedError, ValidationError
from marketplace.models.sample_request import SampleRequest
from marketplace.services.audit_service import record_transition
from marketplace.services.entity_store import (
    QuotationStore,
    RfqStore,
    SampleRequestStore,
    critical_section,
)
from marketplace.services.results import returns_result
from marketplace.services.transition_authority import SAMPLE_WORKFLOW, transition_sample

logger = structlog.get_logger()


@returns_result
async def request_sample(
    session: AsyncSession,
    quotation_id: str,
    buyer_id: str,
    delivery_address: Optional[str] = None,
) -> SampleRequest:
    quotation = await QuotationStore(session).get(quotation_id)
    rfq = await RfqStore(session).get(quotation.rfq_id)
    if rfq.buyer_id != buyer_id:
        raise PermissionDeniedError("Only the RFQ owner can request samples")
    if quotation.status != "sent_to_buyer":
        raise InvalidStateError("Quotation", quotation.status, ("sent_to_buyer",))
    if not quotation.sample_available:
        raise ValidationError(
            f"Quotation {quotation_id} does not offer samples", field="quotation_id"
        )

    async with critical_section(session, f"quotation:{quotation_id}"):
        sample = await SampleRequestStore(session).create(
            rfq_id=rfq.id,
            quotation_id=quotation.id,
            buyer_id=buyer_id,
            supplier_id=quotation.supplier_id,
            delivery_address=delivery_address,
            status=SAMPLE_WORKFLOW.initial_state,
        )
        await record_transition(
            session, buyer_id, "request", "SampleRequest", sample.id, None, sample.status
        )

    logger.info(
        "sample_requested",
        sample_id=sample.id,
        quotation_id=quotation_id,
        supplier_id=quotation.supplier_id,
    )
    return sample


@returns_result
async def review_sample(
    session: AsyncSession, sample_id: str, decision: str, actor_id: Optional[str] = None
) -> SampleRequest:
    targets = {"approve": "approved_by_admin", "reject": "rejected"}
    if decision not in targets:
        raise ValidationError(f"Unknown sample decision: {decision}", field="decision")
    return await transition_sample(session, sample_id, targets[decision], actor_id)


@returns_result
async def ship_sample(
    session: AsyncSession,
    sample_id: str,
    supplier_id: str,
    courier_service: str,
    tracking_number: str,
) -> SampleRequest:
    if not (courier_service or "").strip():
        raise ValidationError("courier_service is required", field="courier_service")
    if not (tracking_number or "").strip():
        raise ValidationError("tracking_number is required", field="tracking_number")

    sample = await SampleRequestStore(session).get(sample_id)
    if sample.supplier_id != supplier_id:
        raise PermissionDeniedError("Only the quoting supplier can ship this sample")
    return await transition_sample(
        session,
        sample_id,
        "shipped_by_supplier",
        supplier_id,
        courier_service=courier_service.strip(),
        tracking_number=tracking_number.strip(),
    )


@returns_result
async def confirm_sample_delivery(
    session: AsyncSession, sample_id: str, buyer_id: str
) -> SampleRequest:
    sample = await SampleRequestStore(session).get(sample_id)
    if sample.buyer_id != buyer_id:
        raise PermissionDeniedError("Only the requesting buyer can confirm delivery")
    return await transition_sample(session, sample_id, "delivered", buyer_id)
