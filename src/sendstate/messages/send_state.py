"""Per-recipient send state and the status-merge reducer.

Every outgoing message tracks, for each recipient conversation, how far
delivery has progressed.  Statuses form a strict total order (see
``STATUS_RANK``); update events only ever move a recipient forward in that
order, so events may be folded in any sequence without regressing state.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class DeliveryStatus(StrEnum):
    PENDING = "Pending"
    FAILED = "Failed"
    SENT = "Sent"
    DELIVERED = "Delivered"
    READ = "Read"


# Merge precedence.  Failed outranks Pending (an attempt was made) but any
# successful progress supersedes a failure.
STATUS_RANK: dict[DeliveryStatus, int] = {
    DeliveryStatus.PENDING: 0,
    DeliveryStatus.FAILED: 1,
    DeliveryStatus.SENT: 2,
    DeliveryStatus.DELIVERED: 3,
    DeliveryStatus.READ: 4,
}


class SendActionType(StrEnum):
    FAILED = "Failed"
    SENT = "Sent"
    GOT_DELIVERY_RECEIPT = "GotDeliveryReceipt"
    GOT_READ_RECEIPT = "GotReadReceipt"


IMPLIED_STATUS: dict[SendActionType, DeliveryStatus] = {
    SendActionType.FAILED: DeliveryStatus.FAILED,
    SendActionType.SENT: DeliveryStatus.SENT,
    SendActionType.GOT_DELIVERY_RECEIPT: DeliveryStatus.DELIVERED,
    SendActionType.GOT_READ_RECEIPT: DeliveryStatus.READ,
}


@dataclass(frozen=True, slots=True)
class RecipientSendState:
    status: DeliveryStatus
    updated_at: int | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"status": self.status.value}
        if self.updated_at is not None:
            result["updated_at"] = self.updated_at
        return result


@dataclass(frozen=True, slots=True)
class UpdateEvent:
    recipient_id: str
    type: SendActionType
    updated_at: int | None = None

    @property
    def implied_status(self) -> DeliveryStatus:
        return IMPLIED_STATUS[self.type]


SendStateMap = dict[str, RecipientSendState]

PENDING_STATE = RecipientSendState(status=DeliveryStatus.PENDING)


def rank(status: DeliveryStatus) -> int:
    """Position of a status in the progress order."""
    return STATUS_RANK[status]


def max_status(a: DeliveryStatus, b: DeliveryStatus) -> DeliveryStatus:
    return a if rank(a) >= rank(b) else b


def reduce(state: RecipientSendState, event: UpdateEvent) -> RecipientSendState:
    """Fold one update event into a recipient's send state.

    The event wins only if it implies strictly more progress than the current
    status.  A winning event without a timestamp keeps the previous
    ``updated_at``.  A losing event returns ``state`` itself.
    """
    new_status = event.implied_status
    if rank(new_status) <= rank(state.status):
        return state
    updated_at = event.updated_at if event.updated_at is not None else state.updated_at
    return RecipientSendState(status=new_status, updated_at=updated_at)


def apply_event(
    send_states: Mapping[str, RecipientSendState],
    event: UpdateEvent,
    default: RecipientSendState = PENDING_STATE,
) -> SendStateMap:
    """Return a copy of ``send_states`` with ``event`` folded in."""
    result = dict(send_states)
    current = result.get(event.recipient_id, default)
    result[event.recipient_id] = reduce(current, event)
    return result


# ---------------------------------------------------------------------------
# Status predicates
# ---------------------------------------------------------------------------


def is_failed(status: DeliveryStatus) -> bool:
    return status == DeliveryStatus.FAILED


def is_sent(status: DeliveryStatus) -> bool:
    return rank(status) >= rank(DeliveryStatus.SENT)


def is_delivered(status: DeliveryStatus) -> bool:
    return rank(status) >= rank(DeliveryStatus.DELIVERED)


def is_read(status: DeliveryStatus) -> bool:
    return rank(status) >= rank(DeliveryStatus.READ)


def some_send_status(
    send_states: Mapping[str, RecipientSendState],
    predicate: Callable[[DeliveryStatus], bool],
) -> bool:
    """True if any recipient's status satisfies ``predicate``."""
    return any(predicate(state.status) for state in send_states.values())


def is_message_just_for_me(
    send_states: Mapping[str, RecipientSendState], our_conversation_id: str
) -> bool:
    """True if our own conversation is the only recipient."""
    return list(send_states) == [our_conversation_id]


def summarize(send_states: Mapping[str, RecipientSendState]) -> dict[str, int]:
    """Count recipients per status, including zero counts."""
    result = {status.value: 0 for status in DeliveryStatus}
    for state in send_states.values():
        result[state.status.value] += 1
    return result


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def send_state_map_to_dict(send_states: Mapping[str, RecipientSendState]) -> dict[str, Any]:
    return {recipient_id: state.to_dict() for recipient_id, state in send_states.items()}


def send_state_map_from_dict(raw: object) -> SendStateMap:
    """Build a send-state map from decoded JSON, skipping malformed entries."""
    if not isinstance(raw, Mapping):
        return {}

    result: SendStateMap = {}
    for recipient_id, value in raw.items():
        if not isinstance(recipient_id, str) or not isinstance(value, Mapping):
            continue
        try:
            status = DeliveryStatus(value.get("status"))
        except ValueError:
            continue
        updated_at = value.get("updated_at")
        if not isinstance(updated_at, int) or isinstance(updated_at, bool):
            updated_at = None
        result[recipient_id] = RecipientSendState(status=status, updated_at=updated_at)
    return result
