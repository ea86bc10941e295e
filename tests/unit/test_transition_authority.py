"""
Unit tests for marketplace/services/transition_authority.py

Pure table checks, no database:
  - every legal edge of each workflow resolves
  - terminal states have no way out
  - internal edges (award, expire, quote, send_to_buyer, publish) are refused
    without their owning action
  - rejection reasons name the problem
"""

import pytest

from marketplace.constants import (
    ORDER_STATUSES,
    QUESTION_STATUSES,
    QUOTATION_STATUSES,
    RFQ_STATUSES,
    SAMPLE_STATUSES,
    VERIFICATION_STATUSES,
)
from marketplace.exceptions import InvalidTransitionError
from marketplace.services.transition_authority import (
    ORDER_WORKFLOW,
    QUESTION_WORKFLOW,
    QUOTATION_WORKFLOW,
    RFQ_WORKFLOW,
    SAMPLE_WORKFLOW,
    SUPPLIER_VERIFICATION_WORKFLOW,
    authorize,
    can_transition,
)


# ---------------------------------------------------------------------------
# Table shape
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "workflow,statuses",
    [
        (RFQ_WORKFLOW, RFQ_STATUSES),
        (QUOTATION_WORKFLOW, QUOTATION_STATUSES),
        (ORDER_WORKFLOW, ORDER_STATUSES),
        (SUPPLIER_VERIFICATION_WORKFLOW, VERIFICATION_STATUSES),
        (SAMPLE_WORKFLOW, SAMPLE_STATUSES),
        (QUESTION_WORKFLOW, QUESTION_STATUSES),
    ],
)
def test_workflow_states_match_column_vocabulary(workflow, statuses):
    assert set(workflow.states) == set(statuses)
    assert workflow.initial_state in workflow.states
    for transition in workflow.transitions:
        assert transition.from_state in workflow.states
        assert transition.to_state in workflow.states


@pytest.mark.parametrize(
    "workflow",
    [
        RFQ_WORKFLOW,
        QUOTATION_WORKFLOW,
        ORDER_WORKFLOW,
        SUPPLIER_VERIFICATION_WORKFLOW,
        SAMPLE_WORKFLOW,
        QUESTION_WORKFLOW,
    ],
)
def test_terminal_states_have_no_outgoing_edges(workflow):
    for terminal in workflow.terminal_states:
        assert not any(t.from_state == terminal for t in workflow.transitions)
        assert workflow.targets(terminal) == ()


# ---------------------------------------------------------------------------
# RFQ
# ---------------------------------------------------------------------------


def test_rfq_admin_review_edges():
    assert authorize(RFQ_WORKFLOW, "pending_approval", "approved").action == "approve"
    assert authorize(RFQ_WORKFLOW, "pending_approval", "rejected").action == "reject"
    assert authorize(RFQ_WORKFLOW, "approved", "matched").action == "confirm_matches"


def test_rfq_close_requires_owning_action():
    with pytest.raises(InvalidTransitionError) as exc_info:
        authorize(RFQ_WORKFLOW, "quoted", "closed")
    assert "owning operation" in exc_info.value.message

    assert authorize(RFQ_WORKFLOW, "quoted", "closed", action="award").internal
    assert authorize(RFQ_WORKFLOW, "approved", "closed", action="expire").internal


def test_rfq_award_only_from_matched_or_quoted():
    assert can_transition(RFQ_WORKFLOW, "matched", "closed", action="award")
    assert can_transition(RFQ_WORKFLOW, "quoted", "closed", action="award")
    assert not can_transition(RFQ_WORKFLOW, "approved", "closed", action="award")
    assert not can_transition(RFQ_WORKFLOW, "pending_approval", "closed", action="award")


def test_rfq_cannot_skip_matching():
    with pytest.raises(InvalidTransitionError) as exc_info:
        authorize(RFQ_WORKFLOW, "pending_approval", "matched")
    err = exc_info.value
    assert err.current_status == "pending_approval"
    assert err.requested_status == "matched"
    assert err.code == "INVALID_TRANSITION"


def test_closed_rfq_is_terminal():
    with pytest.raises(InvalidTransitionError) as exc_info:
        authorize(RFQ_WORKFLOW, "closed", "quoted")
    assert "terminal" in exc_info.value.message


def test_unknown_target_status():
    with pytest.raises(InvalidTransitionError) as exc_info:
        authorize(RFQ_WORKFLOW, "approved", "archived")
    assert exc_info.value.reason == "unknown status"


def test_rfq_public_targets_exclude_internal_edges():
    assert RFQ_WORKFLOW.targets("matched") == ()
    assert set(RFQ_WORKFLOW.targets("pending_approval")) == {"approved", "rejected"}


# ---------------------------------------------------------------------------
# Quotation
# ---------------------------------------------------------------------------


def test_quotation_happy_path():
    assert can_transition(QUOTATION_WORKFLOW, "pending_review", "approved")
    assert can_transition(QUOTATION_WORKFLOW, "approved", "sent_to_buyer", action="send_to_buyer")
    assert can_transition(QUOTATION_WORKFLOW, "sent_to_buyer", "accepted")


def test_quotation_send_to_buyer_is_internal():
    assert not can_transition(QUOTATION_WORKFLOW, "approved", "sent_to_buyer")


def test_quotation_cannot_be_accepted_before_review():
    assert not can_transition(QUOTATION_WORKFLOW, "pending_review", "accepted")
    assert not can_transition(QUOTATION_WORKFLOW, "approved", "accepted")


def test_buyer_decline_uses_decline_action():
    transition = authorize(QUOTATION_WORKFLOW, "sent_to_buyer", "rejected")
    assert transition.action == "decline"


def test_accepted_quotation_cannot_be_rejected():
    with pytest.raises(InvalidTransitionError):
        authorize(QUOTATION_WORKFLOW, "accepted", "rejected")


# ---------------------------------------------------------------------------
# Order / Supplier / Sample
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "current,target",
    [
        ("confirmed", "in_production"),
        ("in_production", "shipped"),
        ("shipped", "delivered"),
        ("delivered", "completed"),
        ("confirmed", "cancelled"),
        ("in_production", "cancelled"),
        ("shipped", "cancelled"),
    ],
)
def test_order_legal_edges(current, target):
    assert can_transition(ORDER_WORKFLOW, current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("confirmed", "shipped"),
        ("delivered", "cancelled"),
        ("completed", "cancelled"),
        ("shipped", "in_production"),
    ],
)
def test_order_illegal_edges(current, target):
    with pytest.raises(InvalidTransitionError):
        authorize(ORDER_WORKFLOW, current, target)


def test_supplier_verification_is_one_shot():
    assert SUPPLIER_VERIFICATION_WORKFLOW.status_field == "verification_status"
    assert can_transition(SUPPLIER_VERIFICATION_WORKFLOW, "pending", "verified")
    assert not can_transition(SUPPLIER_VERIFICATION_WORKFLOW, "verified", "rejected")
    assert not can_transition(SUPPLIER_VERIFICATION_WORKFLOW, "rejected", "verified")


def test_sample_must_be_approved_before_shipping():
    assert not can_transition(SAMPLE_WORKFLOW, "requested", "shipped_by_supplier")
    assert can_transition(SAMPLE_WORKFLOW, "approved_by_admin", "shipped_by_supplier")
    assert authorize(SAMPLE_WORKFLOW, "shipped_by_supplier", "delivered").action == "confirm_delivery"


def test_question_reaches_buyer_only_after_moderation():
    assert not can_transition(QUESTION_WORKFLOW, "pending_admin", "sent_to_buyer")
    assert can_transition(QUESTION_WORKFLOW, "approved_by_admin", "sent_to_buyer", "send_to_buyer")
    assert QUESTION_WORKFLOW.targets("pending_admin") == ("approved_by_admin", "rejected")
    assert QUESTION_WORKFLOW.targets("approved_by_admin") == ()


def test_question_publish_is_owned_by_the_answer_step():
    assert authorize(QUESTION_WORKFLOW, "sent_to_buyer", "answered_by_buyer").action == "answer"
    with pytest.raises(InvalidTransitionError) as exc_info:
        authorize(QUESTION_WORKFLOW, "answered_by_buyer", "published")
    assert exc_info.value.reason == "only reachable through its owning operation"
    assert authorize(QUESTION_WORKFLOW, "answered_by_buyer", "published", "publish").internal


def test_rejected_question_cannot_be_answered():
    with pytest.raises(InvalidTransitionError) as exc_info:
        authorize(QUESTION_WORKFLOW, "rejected", "answered_by_buyer")
    assert exc_info.value.reason == "'rejected' is terminal"
