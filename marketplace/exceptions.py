"""
Typed errors for the marketplace lifecycle core.

Every error carries a class-level ``code`` (machine readable, stable across
releases), an ``http_status`` used by the API layer, and structured
attributes so callers never have to parse messages.

    MarketplaceError
    +-- ValidationError          VALIDATION_ERROR     malformed / out-of-range input
    +-- NotFoundError            NOT_FOUND            referenced id does not exist
    +-- InvalidTransitionError   INVALID_TRANSITION   status move not permitted
    +-- InvalidStateError        INVALID_STATE        entity in the wrong state for an operation
    +-- CapExceededError         CAP_EXCEEDED         business limit hit
    +-- DuplicateOrderError      DUPLICATE_ORDER      order already materialized for a quotation
    +-- PermissionDeniedError    PERMISSION_DENIED    caller does not own the entity
    +-- ConcurrencyError         CONCURRENT_MODIFICATION  stale version on write
"""

from typing import Any, Optional


class MarketplaceError(Exception):
    code: str = "MARKETPLACE_ERROR"
    http_status: int = 400

    def __init__(self, message: str, **details: Any):
        self.message = message
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(MarketplaceError):
    code = "VALIDATION_ERROR"
    http_status = 422

    def __init__(self, message: str, field: Optional[str] = None, **details: Any):
        self.field = field
        if field is not None:
            details["field"] = field
        super().__init__(message, **details)


class NotFoundError(MarketplaceError):
    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            entity_type=entity_type,
            entity_id=entity_id,
        )


class InvalidTransitionError(MarketplaceError):
    code = "INVALID_TRANSITION"
    http_status = 409

    def __init__(
        self,
        entity_type: str,
        current_status: str,
        requested_status: str,
        reason: Optional[str] = None,
    ):
        self.entity_type = entity_type
        self.current_status = current_status
        self.requested_status = requested_status
        self.reason = reason
        message = (
            f"{entity_type} cannot move from '{current_status}' "
            f"to '{requested_status}'"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            entity_type=entity_type,
            current_status=current_status,
            requested_status=requested_status,
        )


class InvalidStateError(MarketplaceError):
    code = "INVALID_STATE"
    http_status = 409

    def __init__(self, entity_type: str, status: str, allowed: tuple[str, ...]):
        self.entity_type = entity_type
        self.status = status
        self.allowed = allowed
        super().__init__(
            f"{entity_type} is '{status}', expected one of {list(allowed)}",
            entity_type=entity_type,
            status=status,
            allowed=list(allowed),
        )


class CapExceededError(MarketplaceError):
    code = "CAP_EXCEEDED"
    http_status = 409

    def __init__(self, rfq_id: str, limit: int):
        self.rfq_id = rfq_id
        self.limit = limit
        super().__init__(
            f"RFQ {rfq_id} already has the maximum of {limit} active quotations",
            rfq_id=rfq_id,
            limit=limit,
        )


class DuplicateOrderError(MarketplaceError):
    """An order already exists for the quotation. Carries that order."""

    code = "DUPLICATE_ORDER"
    http_status = 409

    def __init__(self, quotation_id: str, existing_order: Any):
        self.quotation_id = quotation_id
        self.existing_order = existing_order
        super().__init__(
            f"Order already materialized for quotation {quotation_id}",
            quotation_id=quotation_id,
            order_id=str(existing_order.id),
        )


class PermissionDeniedError(MarketplaceError):
    code = "PERMISSION_DENIED"
    http_status = 403


class ConcurrencyError(MarketplaceError):
    code = "CONCURRENT_MODIFICATION"
    http_status = 409

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} was modified concurrently, reload and retry",
            entity_type=entity_type,
            entity_id=entity_id,
        )
