import pytest

from storefront.domain.order_status import (
    PAYMENT_ONLY_TARGETS,
    TERMINAL_STATUSES,
    OrderStatus,
    can_transition,
    is_terminal,
)

FORWARD = [
    ("pending", "processing"),
    ("processing", "shipped"),
    ("shipped", "delivered"),
]


@pytest.mark.parametrize("current,target", FORWARD)
def test_forward_moves_are_allowed(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize("current,target", [
    ("processing", "pending"),
    ("shipped", "processing"),
    ("pending", "shipped"),
    ("pending", "delivered"),
])
def test_backward_and_skipping_moves_are_rejected(current, target):
    assert not can_transition(current, target)


@pytest.mark.parametrize("current", ["pending", "processing", "shipped"])
def test_cancel_and_refund_from_any_open_state(current):
    assert can_transition(current, OrderStatus.CANCELLED)
    assert can_transition(current, OrderStatus.REFUNDED)


@pytest.mark.parametrize("terminal", sorted(s.value for s in TERMINAL_STATUSES))
def test_terminal_states_have_no_exits(terminal):
    assert is_terminal(terminal)
    assert not any(can_transition(terminal, target) for target in OrderStatus)


def test_processing_is_reserved_for_payment():
    assert OrderStatus.PROCESSING in PAYMENT_ONLY_TARGETS


def test_unknown_status_raises():
    with pytest.raises(ValueError):
        can_transition("pending", "lost")
