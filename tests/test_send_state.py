from itertools import permutations

import pytest

from sendstate.messages.send_state import (
    STATUS_RANK,
    DeliveryStatus,
    RecipientSendState,
    SendActionType,
    UpdateEvent,
    apply_event,
    is_delivered,
    is_failed,
    is_message_just_for_me,
    is_read,
    is_sent,
    max_status,
    rank,
    reduce,
    send_state_map_from_dict,
    send_state_map_to_dict,
    some_send_status,
    summarize,
)

ALL_STATES = [
    RecipientSendState(status=status, updated_at=updated_at)
    for status in DeliveryStatus
    for updated_at in (None, 1000)
]
ALL_EVENTS = [
    UpdateEvent(recipient_id="A", type=action, updated_at=updated_at)
    for action in SendActionType
    for updated_at in (None, 2000)
]


def test_rank_table_orders_statuses():
    ordered = sorted(DeliveryStatus, key=rank)
    assert ordered == [
        DeliveryStatus.PENDING,
        DeliveryStatus.FAILED,
        DeliveryStatus.SENT,
        DeliveryStatus.DELIVERED,
        DeliveryStatus.READ,
    ]
    assert set(STATUS_RANK) == set(DeliveryStatus)
    assert len(set(STATUS_RANK.values())) == len(STATUS_RANK)


def test_max_status():
    assert max_status(DeliveryStatus.FAILED, DeliveryStatus.PENDING) == DeliveryStatus.FAILED
    assert max_status(DeliveryStatus.FAILED, DeliveryStatus.SENT) == DeliveryStatus.SENT
    assert max_status(DeliveryStatus.READ, DeliveryStatus.READ) == DeliveryStatus.READ


def test_event_implied_status():
    assert UpdateEvent("A", SendActionType.GOT_DELIVERY_RECEIPT).implied_status == (
        DeliveryStatus.DELIVERED
    )
    assert UpdateEvent("A", SendActionType.GOT_READ_RECEIPT).implied_status == (
        DeliveryStatus.READ
    )


def test_reduce_advances_and_takes_event_timestamp():
    state = RecipientSendState(DeliveryStatus.PENDING, updated_at=100)
    result = reduce(state, UpdateEvent("A", SendActionType.SENT, updated_at=200))
    assert result == RecipientSendState(DeliveryStatus.SENT, updated_at=200)


def test_reduce_advances_and_keeps_timestamp_when_event_has_none():
    state = RecipientSendState(DeliveryStatus.SENT, updated_at=100)
    result = reduce(state, UpdateEvent("A", SendActionType.GOT_READ_RECEIPT))
    assert result == RecipientSendState(DeliveryStatus.READ, updated_at=100)


def test_reduce_ignores_lower_or_equal_rank():
    state = RecipientSendState(DeliveryStatus.DELIVERED, updated_at=100)
    for action in (SendActionType.FAILED, SendActionType.SENT, SendActionType.GOT_DELIVERY_RECEIPT):
        assert reduce(state, UpdateEvent("A", action, updated_at=999)) is state


def test_failure_supersedes_pending_but_not_sent():
    pending = RecipientSendState(DeliveryStatus.PENDING)
    sent = RecipientSendState(DeliveryStatus.SENT)
    failed = UpdateEvent("A", SendActionType.FAILED)
    assert reduce(pending, failed).status == DeliveryStatus.FAILED
    assert reduce(sent, failed).status == DeliveryStatus.SENT
    retried = reduce(reduce(pending, failed), UpdateEvent("A", SendActionType.SENT))
    assert retried.status == DeliveryStatus.SENT


@pytest.mark.parametrize("state", ALL_STATES)
@pytest.mark.parametrize("event", ALL_EVENTS)
def test_reduce_is_monotonic(state, event):
    assert rank(reduce(state, event).status) >= rank(state.status)


@pytest.mark.parametrize("state", ALL_STATES)
@pytest.mark.parametrize("event", ALL_EVENTS)
def test_reduce_is_idempotent(state, event):
    once = reduce(state, event)
    assert reduce(once, event) == once


def test_final_status_is_order_independent():
    events = [
        UpdateEvent("A", SendActionType.FAILED, updated_at=1),
        UpdateEvent("A", SendActionType.SENT),
        UpdateEvent("A", SendActionType.GOT_DELIVERY_RECEIPT, updated_at=3),
        UpdateEvent("A", SendActionType.SENT, updated_at=4),
    ]
    finals = set()
    for ordering in permutations(events):
        state = RecipientSendState(DeliveryStatus.PENDING, updated_at=0)
        for event in ordering:
            state = reduce(state, event)
        finals.add(state.status)
    assert finals == {DeliveryStatus.DELIVERED}


def test_apply_event_returns_new_map():
    send_states = {"A": RecipientSendState(DeliveryStatus.SENT, updated_at=5)}
    result = apply_event(send_states, UpdateEvent("B", SendActionType.GOT_READ_RECEIPT, 9))
    assert send_states == {"A": RecipientSendState(DeliveryStatus.SENT, updated_at=5)}
    assert result == {
        "A": RecipientSendState(DeliveryStatus.SENT, updated_at=5),
        "B": RecipientSendState(DeliveryStatus.READ, updated_at=9),
    }


def test_apply_event_uses_default_for_missing_recipient():
    default = RecipientSendState(DeliveryStatus.PENDING, updated_at=42)
    result = apply_event({}, UpdateEvent("A", SendActionType.SENT), default)
    assert result == {"A": RecipientSendState(DeliveryStatus.SENT, updated_at=42)}


def test_status_predicates():
    assert is_failed(DeliveryStatus.FAILED)
    assert not is_failed(DeliveryStatus.PENDING)
    assert not is_sent(DeliveryStatus.FAILED)
    assert is_sent(DeliveryStatus.SENT)
    assert is_sent(DeliveryStatus.READ)
    assert not is_delivered(DeliveryStatus.SENT)
    assert is_delivered(DeliveryStatus.DELIVERED)
    assert is_read(DeliveryStatus.READ)
    assert not is_read(DeliveryStatus.DELIVERED)


def test_some_send_status_and_just_for_me():
    send_states = {
        "ME": RecipientSendState(DeliveryStatus.SENT),
        "A": RecipientSendState(DeliveryStatus.FAILED),
    }
    assert some_send_status(send_states, is_failed)
    assert not some_send_status(send_states, is_delivered)
    assert not is_message_just_for_me(send_states, "ME")
    assert is_message_just_for_me({"ME": send_states["ME"]}, "ME")
    assert not is_message_just_for_me({}, "ME")


def test_summarize_counts_every_status():
    summary = summarize(
        {
            "A": RecipientSendState(DeliveryStatus.SENT),
            "B": RecipientSendState(DeliveryStatus.SENT),
            "C": RecipientSendState(DeliveryStatus.READ),
        }
    )
    assert summary == {"Pending": 0, "Failed": 0, "Sent": 2, "Delivered": 0, "Read": 1}


def test_send_state_map_serialization():
    send_states = {
        "A": RecipientSendState(DeliveryStatus.DELIVERED, updated_at=7),
        "B": RecipientSendState(DeliveryStatus.PENDING),
    }
    raw = send_state_map_to_dict(send_states)
    assert raw == {"A": {"status": "Delivered", "updated_at": 7}, "B": {"status": "Pending"}}
    assert send_state_map_from_dict(raw) == send_states


def test_send_state_map_from_dict_skips_malformed_entries():
    raw = {
        "A": {"status": "Read", "updated_at": "yesterday"},
        "B": {"status": "Bogus"},
        "C": "Sent",
        "D": {},
        "E": {"status": "Failed", "updated_at": True},
    }
    assert send_state_map_from_dict(raw) == {
        "A": RecipientSendState(DeliveryStatus.READ),
        "E": RecipientSendState(DeliveryStatus.FAILED),
    }
    assert send_state_map_from_dict(["A"]) == {}
    assert send_state_map_from_dict(None) == {}
