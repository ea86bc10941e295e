"""
HTTP surface: full sourcing flow over the API, error envelopes, role
checks and the internal expiry job.
"""

from datetime import timedelta

import pytest
import structlog

from marketplace.config import settings
from marketplace.services.auth_service import create_access_token
from marketplace.utils import utcnow

TEXTILES = "Textiles & Apparel"


def _headers(user_id: str, role: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id=user_id, role=role)}"}


async def _register(client, email, user_type, **extra):
    body = {"email": email, "name": email.split("@")[0], "user_type": user_type, **extra}
    response = await client.post("/api/v1/users", json=body)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["checks"]["db"] == "ok"


@pytest.mark.asyncio
async def test_full_sourcing_flow(client, market):
    admin = await market.admin()
    admin_h = _headers(admin.id, "admin")

    # --- Supplier onboarding ---
    supplier = await _register(client, "mills@example.com", "supplier", company="Tiruppur Mills", country="India")
    assert supplier["verification_status"] == "pending"
    supplier_h = _headers(supplier["id"], "supplier")

    profile = await client.post(
        "/api/v1/suppliers",
        json={
            "company_name": "Tiruppur Mills",
            "product_categories": [TEXTILES],
            "certifications": ["GOTS", "OEKO-TEX"],
            "years_in_business": 12,
        },
        headers=supplier_h,
    )
    assert profile.status_code == 201, profile.text
    assert profile.json()["verification_status"] == "pending"

    verified = await client.post(
        f"/api/v1/suppliers/{supplier['id']}/verification",
        json={"decision": "verify"},
        headers=admin_h,
    )
    assert verified.status_code == 200
    assert verified.json()["verification_status"] == "verified"

    # --- Buyer posts an RFQ ---
    buyer = await _register(client, "buyer@example.com", "buyer", company="Acme Retail", country="UK")
    buyer_h = _headers(buyer["id"], "buyer")

    created = await client.post(
        "/api/v1/rfqs",
        json={
            "title": "Organic cotton T-shirts",
            "category": TEXTILES,
            "quantity": 5000,
            "unit": "pieces",
            "target_price": "8.50",
            "max_price": "9.00",
        },
        headers=buyer_h,
    )
    assert created.status_code == 201, created.text
    rfq = created.json()
    assert rfq["status"] == "pending_approval"
    assert rfq["target_price"] == "8.50"

    approved = await client.post(f"/api/v1/rfqs/{rfq['id']}/review", json={"decision": "approve"}, headers=admin_h)
    assert approved.json()["status"] == "approved"

    preview = await client.get(f"/api/v1/rfqs/{rfq['id']}/matches", headers=admin_h)
    assert [m["supplier_id"] for m in preview.json()] == [supplier["id"]]
    # 50 + 18 + 6 + 5
    assert preview.json()[0]["match_score"] == 79

    matched = await client.post(f"/api/v1/rfqs/{rfq['id']}/matches", json={}, headers=admin_h)
    assert matched.json()["status"] == "matched"

    visible = await client.get("/api/v1/rfqs", headers=supplier_h)
    assert [r["id"] for r in visible.json()["data"]] == [rfq["id"]]

    # --- Supplier quotes, admin approves ---
    quoted = await client.post(
        "/api/v1/quotations",
        json={"rfq_id": rfq["id"], "quoted_price": "8.00", "moq": 1000, "validity_days": 30, "payment_terms": "30% advance"},
        headers=supplier_h,
    )
    assert quoted.status_code == 201, quoted.text
    quotation = quoted.json()
    assert quotation["total_value"] == "8000.00"
    assert quotation["status"] == "pending_review"

    hidden = await client.get(f"/api/v1/rfqs/{rfq['id']}/quotations", headers=buyer_h)
    assert hidden.json() == []

    reviewed = await client.post(
        f"/api/v1/quotations/{quotation['id']}/review", json={"decision": "approve"}, headers=admin_h
    )
    assert reviewed.json()["status"] == "sent_to_buyer"

    shown = await client.get(f"/api/v1/rfqs/{rfq['id']}/quotations", headers=buyer_h)
    assert [q["id"] for q in shown.json()] == [quotation["id"]]

    # --- Buyer accepts ---
    decision = await client.post(
        f"/api/v1/quotations/{quotation['id']}/decision", json={"decision": "accept"}, headers=buyer_h
    )
    assert decision.status_code == 200, decision.text
    order = decision.json()["order"]
    assert decision.json()["quotation"]["status"] == "accepted"
    assert order["order_value"] == "8000.00"
    assert order["payment_received"] == "2400.00"
    assert order["payment_pending"] == "5600.00"
    assert order["payment_terms"] == "30% advance"

    closed = await client.get(f"/api/v1/rfqs/{rfq['id']}", headers=buyer_h)
    assert closed.json()["status"] == "closed"
    assert closed.json()["awarded_quotation_id"] == quotation["id"]

    orders = await client.get("/api/v1/orders", headers=buyer_h)
    assert [o["id"] for o in orders.json()["data"]] == [order["id"]]

    progressed = await client.post(
        f"/api/v1/orders/{order['id']}/status", json={"status": "in_production"}, headers=supplier_h
    )
    assert progressed.json()["status"] == "in_production"

    stats = await client.get("/api/v1/analytics/platform", headers=admin_h)
    assert stats.json()["gmv"] == "8000.00"

    audit = await client.get(
        "/api/v1/audit-logs", params={"entity_id": order["id"]}, headers=admin_h
    )
    assert [a["action"] for a in audit.json()["data"]] == ["start_production", "materialize"]


# ---------------------------------------------------------------------------
# Error envelopes
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_not_found_envelope(client, market):
    admin = await market.admin()
    response = await client.get("/api/v1/rfqs/does-not-exist", headers=_headers(admin.id, "admin"))
    assert response.status_code == 404
    error = response.json()["error"]
    assert error["code"] == "NOT_FOUND"
    assert error["details"]["entity_type"] == "RFQ"


@pytest.mark.asyncio
async def test_invalid_transition_envelope(client, market):
    admin = await market.admin()
    buyer = await market.buyer()
    rfq = await market.rfq(buyer, through="pending_approval")
    admin_h = _headers(admin.id, "admin")

    await client.post(f"/api/v1/rfqs/{rfq.id}/review", json={"decision": "reject"}, headers=admin_h)
    response = await client.post(f"/api/v1/rfqs/{rfq.id}/review", json={"decision": "approve"}, headers=admin_h)

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"]["current_status"] == "rejected"
    assert error["details"]["requested_status"] == "approved"


@pytest.mark.asyncio
async def test_request_validation_envelope(client, market):
    buyer = await market.buyer()
    response = await client.post(
        "/api/v1/rfqs",
        json={"title": "No quantity", "category": TEXTILES, "unit": "pieces", "target_price": "1.00"},
        headers=_headers(buyer.id, "buyer"),
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_domain_validation_envelope(client, market):
    buyer = await market.buyer()
    response = await client.post(
        "/api/v1/rfqs",
        json={"title": "Rockets", "category": "Rockets", "quantity": 1, "unit": "pieces", "target_price": "1.00"},
        headers=_headers(buyer.id, "buyer"),
    )
    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["details"]["field"] == "category"


@pytest.mark.asyncio
async def test_bad_token_and_wrong_role(client, market):
    bad = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401
    assert bad.json()["error"]["code"] == "AUTH_TOKEN_INVALID"

    supplier = await market.supplier()
    wrong_role = await client.post(
        "/api/v1/rfqs",
        json={"title": "x", "category": TEXTILES, "quantity": 1, "unit": "pieces", "target_price": "1.00"},
        headers=_headers(supplier.id, "supplier"),
    )
    assert wrong_role.status_code == 403
    assert wrong_role.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"


@pytest.mark.asyncio
async def test_admin_cannot_self_register(client):
    response = await client.post(
        "/api/v1/users", json={"email": "root@example.com", "name": "Root", "user_type": "admin"}
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PERMISSION_DENIED"


@pytest.mark.asyncio
async def test_supplier_cannot_see_unmatched_rfq(client, market):
    await market.supplier()
    outsider = await market.supplier(categories=["Toys & Games"])
    buyer = await market.buyer()
    rfq = await market.rfq(buyer)

    response = await client.get(f"/api/v1/rfqs/{rfq.id}", headers=_headers(outsider.id, "supplier"))
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PERMISSION_DENIED"


# ---------------------------------------------------------------------------
# Internal jobs
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_expire_job_requires_secret(client, market, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_JOB_SECRET", "s3cret")
    buyer = await market.buyer()
    rfq = await market.rfq(buyer, through="pending_approval")

    denied = await client.post("/internal/jobs/expire-rfqs")
    assert denied.status_code == 403

    now = await client.post("/internal/jobs/expire-rfqs", headers={"X-Internal-Secret": "s3cret"})
    assert now.status_code == 200
    assert now.json() == {"checked": 0, "expired": [], "failed": []}

    as_of = (utcnow() + timedelta(days=45)).isoformat()
    later = await client.post(
        "/internal/jobs/expire-rfqs",
        params={"as_of": as_of},
        headers={"X-Internal-Secret": "s3cret"},
    )
    assert later.json()["expired"] == [rfq.id]


@pytest.mark.asyncio
async def test_expire_job_unconfigured_outside_debug(client, monkeypatch):
    monkeypatch.setattr(settings, "INTERNAL_JOB_SECRET", None)
    monkeypatch.setattr(settings, "DEBUG", False)
    response = await client.post("/internal/jobs/expire-rfqs")
    assert response.status_code == 503


# ---------------------------------------------------------------------------
# Request correlation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_request_id_is_echoed_and_unbound_afterwards(client):
    structlog.contextvars.clear_contextvars()

    response = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"

    generated = await client.get("/health")
    assert generated.headers["X-Request-ID"]
    assert generated.headers["X-Request-ID"] != "req-123"

    leftover = structlog.contextvars.get_contextvars()
    assert "request_id" not in leftover
    assert "path" not in leftover


# ---------------------------------------------------------------------------
# RFQ questions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_question_flow_over_http(client, market):
    asker = await market.supplier()
    peer = await market.supplier()
    buyer = await market.buyer()
    rfq = await market.rfq(buyer)
    admin = await market.admin()
    asker_h = _headers(asker.id, "supplier")
    peer_h = _headers(peer.id, "supplier")
    buyer_h = _headers(buyer.id, "buyer")
    admin_h = _headers(admin.id, "admin")

    asked = await client.post(
        "/api/v1/questions", json={"rfq_id": rfq.id, "question": "Is GOTS required?"}, headers=asker_h
    )
    assert asked.status_code == 201, asked.text
    question = asked.json()
    assert question["status"] == "pending_admin"
    assert question["visible_to_all"] is False

    queue = await client.get("/api/v1/questions", params={"status": "pending_admin"}, headers=admin_h)
    assert [q["id"] for q in queue.json()["data"]] == [question["id"]]

    hidden = await client.get("/api/v1/questions", params={"rfq_id": rfq.id}, headers=peer_h)
    assert hidden.json()["data"] == []

    early = await client.post(
        f"/api/v1/questions/{question['id']}/answer", json={"answer": "Yes"}, headers=buyer_h
    )
    assert early.status_code == 409
    assert early.json()["error"]["code"] == "INVALID_TRANSITION"

    approved = await client.post(
        f"/api/v1/questions/{question['id']}/review", json={"decision": "approve"}, headers=admin_h
    )
    assert approved.json()["status"] == "sent_to_buyer"

    answered = await client.post(
        f"/api/v1/questions/{question['id']}/answer", json={"answer": "Yes, GOTS only."}, headers=buyer_h
    )
    assert answered.status_code == 200, answered.text
    assert answered.json()["status"] == "published"
    assert answered.json()["buyer_answer"] == "Yes, GOTS only."

    public = await client.get("/api/v1/questions", params={"rfq_id": rfq.id}, headers=peer_h)
    assert [q["visible_to_all"] for q in public.json()["data"]] == [True]


@pytest.mark.asyncio
async def test_question_routes_check_roles(client, market):
    outsider = await market.supplier(categories=["Toys & Games"])
    await market.supplier()
    buyer = await market.buyer()
    rfq = await market.rfq(buyer)

    by_buyer = await client.post(
        "/api/v1/questions", json={"rfq_id": rfq.id, "question": "?"}, headers=_headers(buyer.id, "buyer")
    )
    assert by_buyer.status_code == 403
    assert by_buyer.json()["error"]["code"] == "INSUFFICIENT_PERMISSIONS"

    unmatched = await client.post(
        "/api/v1/questions", json={"rfq_id": rfq.id, "question": "Price?"}, headers=_headers(outsider.id, "supplier")
    )
    assert unmatched.status_code == 403
    assert unmatched.json()["error"]["code"] == "PERMISSION_DENIED"

    no_rfq = await client.get("/api/v1/questions", headers=_headers(buyer.id, "buyer"))
    assert no_rfq.status_code == 422
    assert no_rfq.json()["error"]["details"]["field"] == "rfq_id"
