"""Migration of legacy send attributes into per-recipient send state.

Older outgoing messages recorded delivery progress in flat lists such as
``sent_to`` and ``read_by``.  Those fields are untyped and may be missing or
malformed, so they are only ever read through the guarded extractors below.

The legacy fields are left on the record, in case the new format needs to be
reverted.  They can be dropped once nothing reads them:

- delivered
- delivered_to
- read_by
- recipients
- sent
- sent_to
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Protocol

from sendstate.messages.send_state import (
    DeliveryStatus,
    RecipientSendState,
    SendActionType,
    SendStateMap,
    UpdateEvent,
    reduce,
)

LEGACY_SEND_ATTRIBUTES = (
    "delivered",
    "delivered_to",
    "read_by",
    "recipients",
    "sent",
    "sent_to",
)

SEND_STATE_KEY = "send_state_by_conversation_id"


class ResolvedConversation(Protocol):
    id: str


ResolveConversation = Callable[[str | None], ResolvedConversation | None]


def is_outgoing(message: Mapping[str, Any]) -> bool:
    return message.get("type") == "outgoing"


def should_migrate(message: Mapping[str, Any]) -> bool:
    """Only outgoing messages without normalized state are migrated."""
    return not message.get(SEND_STATE_KEY) and is_outgoing(message)


def _legacy_list(message: Mapping[str, Any], attribute: str) -> list[Any]:
    value = message.get(attribute)
    return list(value) if isinstance(value, (list, tuple)) else []


def _legacy_timestamp(message: Mapping[str, Any]) -> int | None:
    value = message.get("sent_at")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def conversation_ids_from_attribute(
    message: Mapping[str, Any],
    attribute: str,
    resolve_conversation: ResolveConversation,
) -> list[str]:
    """Resolve each string identifier in a legacy list attribute."""
    result: list[str] = []
    for identifier in _legacy_list(message, attribute):
        if not isinstance(identifier, str):
            continue
        conversation = resolve_conversation(identifier)
        if conversation:
            result.append(conversation.id)
    return result


def conversation_ids_from_errors(
    message: Mapping[str, Any],
    resolve_conversation: ResolveConversation,
) -> list[str]:
    """Resolve the recipient of each legacy error, by identifier then number."""
    result: list[str] = []
    for error in _legacy_list(message, "errors"):
        if not isinstance(error, Mapping):
            continue
        identifier = error.get("identifier")
        number = error.get("number")
        conversation = resolve_conversation(
            identifier if isinstance(identifier, str) else None
        ) or resolve_conversation(number if isinstance(number, str) else None)
        if conversation:
            result.append(conversation.id)
    return result


def _events(action: SendActionType, conversation_ids: Iterable[str]) -> list[UpdateEvent]:
    return [UpdateEvent(recipient_id=cid, type=action) for cid in conversation_ids]


def derive_events(
    message: Mapping[str, Any],
    resolve_conversation: ResolveConversation,
    our_conversation_id: str,
) -> list[UpdateEvent]:
    """Build the ordered update events implied by a message's legacy fields.

    Order: failures, sends, delivery receipts, read receipts, then a single
    event for our own conversation (Sent if the legacy ``sent`` flag is
    truthy, Failed otherwise).  None of the events carry a timestamp.
    """
    was_sent_to_self = bool(message.get("sent"))
    return [
        *_events(
            SendActionType.FAILED,
            conversation_ids_from_errors(message, resolve_conversation),
        ),
        *_events(
            SendActionType.SENT,
            conversation_ids_from_attribute(message, "sent_to", resolve_conversation),
        ),
        *_events(
            SendActionType.GOT_DELIVERY_RECEIPT,
            conversation_ids_from_attribute(message, "delivered_to", resolve_conversation),
        ),
        *_events(
            SendActionType.GOT_READ_RECEIPT,
            conversation_ids_from_attribute(message, "read_by", resolve_conversation),
        ),
        UpdateEvent(
            recipient_id=our_conversation_id,
            type=SendActionType.SENT if was_sent_to_self else SendActionType.FAILED,
        ),
    ]


def migrate_legacy_send_attributes(
    message: Mapping[str, Any],
    resolve_conversation: ResolveConversation,
    our_conversation_id: str,
) -> SendStateMap | None:
    """Convert legacy send fields into a send-state map.

    Returns ``None`` when the message needs no migration (not outgoing, or it
    already has send state).  Callers must leave existing state untouched in
    that case.  ``message`` is never modified.
    """
    if not should_migrate(message):
        return None

    pending_send_state = RecipientSendState(
        status=DeliveryStatus.PENDING,
        updated_at=_legacy_timestamp(message),
    )

    send_states: SendStateMap = {
        conversation_id: pending_send_state
        for conversation_id in conversation_ids_from_attribute(
            message, "recipients", resolve_conversation
        )
    }

    for event in derive_events(message, resolve_conversation, our_conversation_id):
        old_send_state = send_states.get(event.recipient_id, pending_send_state)
        send_states[event.recipient_id] = reduce(old_send_state, event)

    return send_states
