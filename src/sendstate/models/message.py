"""Message record model."""

import json
import uuid as uuid_mod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sendstate.db import get_db, transaction
from sendstate.messages.legacy import SEND_STATE_KEY
from sendstate.messages.send_state import (
    RecipientSendState,
    SendStateMap,
    UpdateEvent,
    apply_event,
    send_state_map_from_dict,
    send_state_map_to_dict,
)

_MESSAGE_COLUMNS = (
    "id, conversation_id, type, sent_at, body, send_state_json, legacy_json, "
    "created_at, updated_at"
)

_NEEDS_MIGRATION = (
    "type = 'outgoing' AND (send_state_json IS NULL OR send_state_json IN ('', '{}'))"
)


def _load_json(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def _dump_send_state(send_state: SendStateMap) -> str:
    return json.dumps(send_state_map_to_dict(send_state))


@dataclass
class Message:
    id: str
    conversation_id: str | None
    type: str
    sent_at: int | None
    body: str
    created_at: str
    updated_at: str
    send_state: SendStateMap = field(default_factory=dict)
    legacy: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def _from_row(row: tuple) -> "Message":
        legacy = _load_json(row[6])
        return Message(
            id=row[0],
            conversation_id=row[1],
            type=row[2],
            sent_at=row[3],
            body=row[4] or "",
            send_state=send_state_map_from_dict(_load_json(row[5])),
            legacy=legacy if isinstance(legacy, dict) else {},
            created_at=row[7],
            updated_at=row[8],
        )

    def is_outgoing(self) -> bool:
        return self.type == "outgoing"

    def legacy_record(self) -> dict[str, Any]:
        """The message as the untyped attribute mapping legacy migration reads."""
        record = dict(self.legacy)
        record["type"] = self.type
        record["sent_at"] = self.sent_at
        record[SEND_STATE_KEY] = dict(self.send_state)
        return record

    @staticmethod
    def create(
        conversation_id: str | None,
        message_type: str = "outgoing",
        sent_at: int | None = None,
        body: str = "",
        send_state: SendStateMap | None = None,
        legacy: dict[str, Any] | None = None,
        message_id: str | None = None,
    ) -> "Message":
        """Store a new message record."""
        msg_id = message_id or str(uuid_mod.uuid4())
        now = datetime.now(UTC).isoformat()
        send_state_json = _dump_send_state(send_state) if send_state else None
        legacy_json = json.dumps(legacy) if legacy else None

        with transaction() as cursor:
            cursor.execute(
                "INSERT INTO message "
                "(id, conversation_id, type, sent_at, body, send_state_json, legacy_json, "
                "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    msg_id,
                    conversation_id,
                    message_type,
                    sent_at,
                    body,
                    send_state_json,
                    legacy_json,
                    now,
                    now,
                ),
            )

        return Message(
            id=msg_id,
            conversation_id=conversation_id,
            type=message_type,
            sent_at=sent_at,
            body=body,
            created_at=now,
            updated_at=now,
            send_state=dict(send_state or {}),
            legacy=dict(legacy or {}),
        )

    @staticmethod
    def get_by_id(message_id: str) -> "Message | None":
        """Get a message by ID."""
        db = get_db()
        row = db.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM message WHERE id = ?", (message_id,)
        ).fetchone()
        return Message._from_row(row) if row else None

    @staticmethod
    def list_needing_migration(limit: int = 100, after_id: str = "") -> list["Message"]:
        """Outgoing messages without send state, ordered by ID."""
        db = get_db()
        rows = db.execute(
            f"SELECT {_MESSAGE_COLUMNS} FROM message "
            f"WHERE {_NEEDS_MIGRATION} AND id > ? ORDER BY id LIMIT ?",
            (after_id, limit),
        ).fetchall()
        return [Message._from_row(row) for row in rows]

    @staticmethod
    def count_needing_migration() -> int:
        db = get_db()
        row = db.execute(f"SELECT COUNT(*) FROM message WHERE {_NEEDS_MIGRATION}").fetchone()
        return int(row[0]) if row else 0

    def save_migrated_send_state(self, send_state: SendStateMap) -> bool:
        """Store a migrated send state if the message still has none.

        Returns False, and reloads the stored state, when send state was
        created since this object was loaded.
        """
        now = datetime.now(UTC).isoformat()
        with transaction() as cursor:
            cursor.execute(
                "UPDATE message SET send_state_json = ?, updated_at = ? "
                f"WHERE id = ? AND {_NEEDS_MIGRATION}",
                (_dump_send_state(send_state), now, self.id),
            )
            row = cursor.execute("SELECT changes()").fetchone()
            saved = bool(row and row[0])
            if not saved:
                row = cursor.execute(
                    "SELECT send_state_json, updated_at FROM message WHERE id = ?", (self.id,)
                ).fetchone()

        if saved:
            self.send_state = dict(send_state)
            self.updated_at = now
        elif row:
            self.send_state = send_state_map_from_dict(_load_json(row[0]))
            self.updated_at = row[1]
        return saved

    def apply_event(self, event: UpdateEvent) -> RecipientSendState:
        """Fold a live delivery event into the stored send state.

        The stored state is re-read inside the transaction so concurrent
        receipts for the same message are not lost.
        """
        now = datetime.now(UTC).isoformat()
        with transaction() as cursor:
            row = cursor.execute(
                "SELECT send_state_json FROM message WHERE id = ?", (self.id,)
            ).fetchone()
            current = send_state_map_from_dict(_load_json(row[0] if row else None))
            send_state = apply_event(current, event)
            if send_state[event.recipient_id] is not current.get(event.recipient_id):
                cursor.execute(
                    "UPDATE message SET send_state_json = ?, updated_at = ? WHERE id = ?",
                    (_dump_send_state(send_state), now, self.id),
                )
                self.updated_at = now

        self.send_state = send_state
        return send_state[event.recipient_id]
