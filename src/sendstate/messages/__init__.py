"""Message send-state model and legacy attribute migration."""

from sendstate.messages.legacy import derive_events, migrate_legacy_send_attributes
from sendstate.messages.send_state import (
    DeliveryStatus,
    RecipientSendState,
    SendActionType,
    SendStateMap,
    UpdateEvent,
    reduce,
)

__all__ = [
    "DeliveryStatus",
    "RecipientSendState",
    "SendActionType",
    "SendStateMap",
    "UpdateEvent",
    "derive_events",
    "migrate_legacy_send_attributes",
    "reduce",
]
