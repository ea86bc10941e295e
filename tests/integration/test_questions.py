"""
Supplier questions: ask, moderate, answer and publish, plus who may read what.
"""

import pytest

from marketplace.exceptions import PermissionDeniedError, ValidationError
from marketplace.services import question_service
from marketplace.services.entity_store import AuditLogStore, SupplierQuestionStore

SPICES = "Spices & Food Products"


async def _matched_rfq(market, suppliers=2):
    """RFQ matched to ``suppliers`` verified textile suppliers."""
    matched = [await market.supplier() for _ in range(suppliers)]
    buyer = await market.buyer()
    rfq = await market.rfq(buyer)
    return buyer.id, rfq.id, [s.id for s in matched]


async def _asked(market, db, text="Is organic certification mandatory?"):
    buyer_id, rfq_id, supplier_ids = await _matched_rfq(market)
    question = (
        await question_service.ask_question(db, rfq_id, supplier_ids[0], text)
    ).unwrap()
    return buyer_id, rfq_id, supplier_ids, question.id


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_question_full_lifecycle(market, db):
    buyer_id, rfq_id, supplier_ids, q_id = await _asked(market, db, "  Is GOTS required?  ")
    admin = await market.admin()

    asked = await market.fresh(SupplierQuestionStore, q_id)
    assert asked.status == "pending_admin"
    assert asked.question == "Is GOTS required?"
    assert not asked.visible_to_all

    forwarded = (await question_service.review_question(db, q_id, "approve", admin.id)).unwrap()
    assert forwarded.status == "sent_to_buyer"
    assert forwarded.admin_approved_at is not None

    published = (
        await question_service.answer_question(db, q_id, buyer_id, " Yes, GOTS only. ")
    ).unwrap()
    assert published.status == "published"
    assert published.buyer_answer == "Yes, GOTS only."
    assert published.buyer_answered_at == published.published_at
    assert published.visible_to_all

    trail = await AuditLogStore(db).list(entity_id=q_id)
    assert sorted((a.action, a.after_status) for a in trail) == [
        ("answer", "answered_by_buyer"),
        ("approve", "approved_by_admin"),
        ("ask", "pending_admin"),
        ("publish", "published"),
        ("send_to_buyer", "sent_to_buyer"),
    ]


@pytest.mark.asyncio
async def test_rejected_question_never_reaches_the_buyer(market, db):
    buyer_id, _, _, q_id = await _asked(market, db)
    admin = await market.admin()
    admin_id = admin.id

    rejected = (
        await question_service.review_question(db, q_id, "reject", admin_id, reason="Off topic")
    ).unwrap()
    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "Off topic"

    late_answer = await question_service.answer_question(db, q_id, buyer_id, "Anything")
    assert late_answer.error_code == "INVALID_TRANSITION"
    again = await question_service.review_question(db, q_id, "approve", admin_id)
    assert again.error_code == "INVALID_TRANSITION"
    assert (await market.fresh(SupplierQuestionStore, q_id)).buyer_answer is None


@pytest.mark.asyncio
async def test_buyer_cannot_answer_before_moderation(market, db):
    buyer_id, _, _, q_id = await _asked(market, db)

    early = await question_service.answer_question(db, q_id, buyer_id, "Yes")
    assert early.error_code == "INVALID_TRANSITION"
    assert (await market.fresh(SupplierQuestionStore, q_id)).status == "pending_admin"


@pytest.mark.asyncio
async def test_unknown_moderation_decision(market, db):
    _, _, _, q_id = await _asked(market, db)
    admin = await market.admin()
    result = await question_service.review_question(db, q_id, "escalate", admin.id)
    assert result.error_code == "VALIDATION_ERROR"


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_ask_guards(market, db):
    outsider = await market.supplier(categories=[SPICES])
    buyer_id, rfq_id, supplier_ids = await _matched_rfq(market)
    pending_rfq = await market.rfq(buyer_id, through="pending_approval")
    ids = dict(outsider=outsider.id, pending_rfq=pending_rfq.id)

    blank = await question_service.ask_question(db, rfq_id, supplier_ids[0], "   ")
    assert blank.error_code == "VALIDATION_ERROR"

    too_long = await question_service.ask_question(db, rfq_id, supplier_ids[0], "x" * 2001)
    assert too_long.error_code == "VALIDATION_ERROR"

    not_matched = await question_service.ask_question(db, rfq_id, ids["outsider"], "Price?")
    assert not_matched.error_code == "PERMISSION_DENIED"

    not_open = await question_service.ask_question(db, ids["pending_rfq"], supplier_ids[0], "Price?")
    assert not_open.error_code == "INVALID_STATE"

    assert await SupplierQuestionStore(db).list(rfq_id=rfq_id) == []


@pytest.mark.asyncio
async def test_only_the_rfq_owner_answers(market, db):
    _, _, _, q_id = await _asked(market, db)
    stranger = await market.buyer()
    admin = await market.admin()
    stranger_id = stranger.id
    (await question_service.review_question(db, q_id, "approve", admin.id)).unwrap()

    result = await question_service.answer_question(db, q_id, stranger_id, "Yes")
    assert result.error_code == "PERMISSION_DENIED"

    blank = await question_service.answer_question(db, q_id, stranger_id, " ")
    assert blank.error_code == "VALIDATION_ERROR"
    assert (await market.fresh(SupplierQuestionStore, q_id)).status == "sent_to_buyer"


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------


async def _matched_rfq_with_questions(market, db):
    """One question in each of pending_admin, sent_to_buyer and published."""
    buyer_id, rfq_id, supplier_ids = await _matched_rfq(market)
    asker = supplier_ids[0]
    admin = await market.admin()
    admin_id = admin.id

    asked = []
    for text in ("Packaging?", "Lead time flexible?", "Colour options?"):
        q = (await question_service.ask_question(db, rfq_id, asker, text)).unwrap()
        asked.append(q.id)
    (await question_service.review_question(db, asked[1], "approve", admin_id)).unwrap()
    (await question_service.review_question(db, asked[2], "approve", admin_id)).unwrap()
    (await question_service.answer_question(db, asked[2], buyer_id, "Any Pantone")).unwrap()
    return buyer_id, rfq_id, supplier_ids, asked


@pytest.mark.asyncio
async def test_visibility_by_role(market, db):
    buyer_id, rfq_id, (asker, peer), _ = await _matched_rfq_with_questions(market, db)

    buyer_view = await question_service.list_questions_for(db, buyer_id, "buyer", rfq_id)
    assert sorted(q.status for q in buyer_view) == ["published", "sent_to_buyer"]

    asker_view = await question_service.list_questions_for(db, asker, "supplier", rfq_id)
    assert sorted(q.status for q in asker_view) == ["pending_admin", "published", "sent_to_buyer"]

    peer_view = await question_service.list_questions_for(db, peer, "supplier", rfq_id)
    assert [q.status for q in peer_view] == ["published"]

    admin = await market.admin()
    queue = await question_service.list_questions_for(db, admin.id, "admin", status="pending_admin")
    assert [q.status for q in queue] == ["pending_admin"]


@pytest.mark.asyncio
async def test_strangers_cannot_list(market, db):
    outsider = await market.supplier(categories=[SPICES])
    other_buyer = await market.buyer()
    _, rfq_id, _, _ = await _asked(market, db)

    with pytest.raises(PermissionDeniedError) as supplier_denied:
        await question_service.list_questions_for(db, outsider.id, "supplier", rfq_id)
    assert supplier_denied.value.code == "PERMISSION_DENIED"

    with pytest.raises(PermissionDeniedError) as buyer_denied:
        await question_service.list_questions_for(db, other_buyer.id, "buyer", rfq_id)
    assert buyer_denied.value.code == "PERMISSION_DENIED"

    with pytest.raises(ValidationError) as no_rfq:
        await question_service.list_questions_for(db, other_buyer.id, "buyer")
    assert no_rfq.value.code == "VALIDATION_ERROR"
