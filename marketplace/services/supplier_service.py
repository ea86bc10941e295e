"""
Supplier profiles: categories, certifications, experience.

A profile shares its id with the supplier user. New profiles start
pending; only verified suppliers are matched or may quote.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from marketplace.constants import is_known_category
from marketplace.exceptions import InvalidStateError, ValidationError
from marketplace.models.supplier import Supplier
from marketplace.services.entity_store import SupplierStore, UserStore
from marketplace.services.results import OperationResult, returns_result
from marketplace.services.transition_authority import (
    SUPPLIER_VERIFICATION_WORKFLOW,
    set_supplier_verification,
)

logger = structlog.get_logger()

EDITABLE_FIELDS = ("company_name", "country", "product_categories", "certifications", "years_in_business")


def _clean_categories(categories: Optional[list[str]]) -> list[str]:
    if not categories:
        raise ValidationError("At least one product category is required", field="product_categories")
    unknown = sorted({c for c in categories if not is_known_category(c)})
    if unknown:
        raise ValidationError(
            f"Unknown product category: {', '.join(unknown)}", field="product_categories"
        )
    # dedupe, keep first-seen order
    return list(dict.fromkeys(categories))


def _clean_certifications(certifications: Optional[list[str]]) -> list[str]:
    cleaned = [c.strip() for c in (certifications or []) if c and c.strip()]
    return list(dict.fromkeys(cleaned))


def _clean_years(years: Any) -> int:
    if isinstance(years, bool) or not isinstance(years, int) or years < 0:
        raise ValidationError("years_in_business must be a non-negative integer", field="years_in_business")
    return years


@returns_result
async def create_profile(
    session: AsyncSession,
    user_id: str,
    company_name: str,
    product_categories: list[str],
    certifications: Optional[list[str]] = None,
    years_in_business: int = 0,
    country: Optional[str] = None,
) -> Supplier:
    user = await UserStore(session).get(user_id)
    if user.user_type != "supplier":
        raise InvalidStateError("User", user.user_type, ("supplier",))

    suppliers = SupplierStore(session)
    if await suppliers.find_one(id=user_id) is not None:
        raise ValidationError(f"Supplier profile already exists for {user_id}", field="user_id")

    supplier = await suppliers.create(
        id=user_id,
        company_name=company_name,
        country=country or user.country,
        product_categories=_clean_categories(product_categories),
        certifications=_clean_certifications(certifications),
        years_in_business=_clean_years(years_in_business),
        verification_status=SUPPLIER_VERIFICATION_WORKFLOW.initial_state,
    )
    user.profile_completed = True

    logger.info(
        "supplier_profile_created",
        supplier_id=supplier.id,
        categories=supplier.product_categories,
    )
    return supplier


@returns_result
async def update_profile(session: AsyncSession, supplier_id: str, **fields: Any) -> Supplier:
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValidationError(
            f"Supplier field(s) cannot be edited: {', '.join(unknown)}", field=unknown[0]
        )
    if "product_categories" in fields:
        fields["product_categories"] = _clean_categories(fields["product_categories"])
    if "certifications" in fields:
        fields["certifications"] = _clean_certifications(fields["certifications"])
    if "years_in_business" in fields:
        fields["years_in_business"] = _clean_years(fields["years_in_business"])

    supplier = await SupplierStore(session).update(supplier_id, **fields)
    logger.info("supplier_profile_updated", supplier_id=supplier_id, fields=sorted(fields))
    return supplier


async def review_supplier(
    session: AsyncSession, supplier_id: str, decision: str, actor_id: Optional[str] = None
) -> OperationResult[Supplier]:
    """Admin verify/reject of a pending profile."""
    return await set_supplier_verification(session, supplier_id, decision, actor_id)
