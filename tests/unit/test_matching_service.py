"""
Unit tests for marketplace/services/matching_service.py

  - score formula: base 50, experience up to 30, certifications up to 15,
    category specificity 5/3/1, clamped to 0..100
  - eligibility: verified + lists the RFQ category
  - ranking: score desc, supplier id asc on ties
  - match_suppliers refuses RFQs that are not approved/matched
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from marketplace.exceptions import InvalidStateError
from marketplace.services import matching_service
from marketplace.services.matching_service import is_eligible, score_supplier

TEXTILES = "Textiles & Apparel"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _supplier(
    supplier_id: str = "s-1",
    years: int = 5,
    certifications=(),
    categories=(TEXTILES,),
    status: str = "verified",
):
    return SimpleNamespace(
        id=supplier_id,
        company_name=f"{supplier_id} Exports",
        country="India",
        years_in_business=years,
        certifications=list(certifications),
        product_categories=list(categories),
        verification_status=status,
    )


def _patch_store(monkeypatch, rfq, suppliers):
    rfq_store = MagicMock()
    rfq_store.get = AsyncMock(return_value=rfq)
    supplier_store = MagicMock()
    supplier_store.list = AsyncMock(return_value=suppliers)
    monkeypatch.setattr(matching_service, "RfqStore", lambda session: rfq_store)
    monkeypatch.setattr(matching_service, "SupplierStore", lambda session: supplier_store)
    return supplier_store


# ---------------------------------------------------------------------------
# Score
# ---------------------------------------------------------------------------


def test_score_single_category_five_years():
    # 50 + 5*3//2 (7) + 0 + 5
    assert score_supplier(_supplier(years=5)) == 62


def test_score_is_capped_at_100():
    supplier = _supplier(
        years=40,
        certifications=["ISO 9001", "GOTS", "OEKO-TEX", "BSCI", "SEDEX", "WRAP"],
    )
    assert score_supplier(supplier) == 100


def test_score_two_categories_and_certifications():
    supplier = _supplier(
        years=10,
        certifications=["ISO 9001", "GOTS"],
        categories=[TEXTILES, "Leather Goods & Footwear"],
    )
    # 50 + 15 + 6 + 3
    assert score_supplier(supplier) == 74


def test_score_broad_supplier_gets_lowest_specificity():
    supplier = _supplier(
        years=0,
        categories=[TEXTILES, "Toys & Games", "Jewelry & Gems"],
    )
    assert score_supplier(supplier) == 51


def test_duplicate_certifications_count_once():
    once = _supplier(certifications=["ISO 9001"])
    twice = _supplier(certifications=["ISO 9001", "ISO 9001"])
    assert score_supplier(once) == score_supplier(twice)


def test_negative_years_do_not_reduce_score():
    assert score_supplier(_supplier(years=-3)) == score_supplier(_supplier(years=0)) == 55


def test_score_is_deterministic():
    supplier = _supplier(years=7, certifications=["GOTS"])
    assert {score_supplier(supplier) for _ in range(5)} == {68}


# ---------------------------------------------------------------------------
# Eligibility + ranking
# ---------------------------------------------------------------------------


def test_unverified_supplier_is_not_eligible():
    assert is_eligible(_supplier(), TEXTILES)
    assert not is_eligible(_supplier(status="pending"), TEXTILES)
    assert not is_eligible(_supplier(status="rejected"), TEXTILES)


def test_supplier_must_list_the_category():
    assert not is_eligible(_supplier(categories=["Toys & Games"]), TEXTILES)


@pytest.mark.asyncio
async def test_match_ranks_by_score_then_id(monkeypatch):
    rfq = SimpleNamespace(id="rfq-1", status="approved", category=TEXTILES)
    suppliers = [
        _supplier("s-c", years=5),
        _supplier("s-a", years=5),
        _supplier("s-b", years=20, certifications=["GOTS"]),
        _supplier("s-x", categories=["Toys & Games"]),
    ]
    store = _patch_store(monkeypatch, rfq, suppliers)

    matches = await matching_service.match_suppliers(AsyncMock(), "rfq-1")

    assert [m.supplier_id for m in matches] == ["s-b", "s-a", "s-c"]
    assert matches[0].match_score == 88
    store.list.assert_awaited_once_with(verification_status="verified")


@pytest.mark.asyncio
async def test_match_refuses_pending_rfq(monkeypatch):
    rfq = SimpleNamespace(id="rfq-1", status="pending_approval", category=TEXTILES)
    _patch_store(monkeypatch, rfq, [])

    with pytest.raises(InvalidStateError) as exc_info:
        await matching_service.match_suppliers(AsyncMock(), "rfq-1")
    assert exc_info.value.status == "pending_approval"


@pytest.mark.asyncio
async def test_match_with_no_candidates_is_empty(monkeypatch):
    rfq = SimpleNamespace(id="rfq-1", status="matched", category=TEXTILES)
    _patch_store(monkeypatch, rfq, [_supplier(categories=["Toys & Games"])])

    assert await matching_service.match_suppliers(AsyncMock(), "rfq-1") == []
