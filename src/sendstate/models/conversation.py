"""Conversation directory model.

Legacy message attributes name recipients by phone number (E.164) or service
id; ``Conversation.lookup`` maps any of those to the conversation record.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from sendstate.db import get_db, transaction

_CONVERSATION_COLUMNS = "id, e164, service_id, name, created_at"


@dataclass
class Conversation:
    id: str
    e164: str | None
    service_id: str | None
    name: str | None
    created_at: str

    @staticmethod
    def _from_row(row: tuple) -> "Conversation":
        return Conversation(
            id=row[0],
            e164=row[1],
            service_id=row[2],
            name=row[3],
            created_at=row[4],
        )

    @staticmethod
    def create(
        conversation_id: str,
        e164: str | None = None,
        service_id: str | None = None,
        name: str | None = None,
    ) -> "Conversation":
        """Add a conversation to the directory."""
        now = datetime.now(UTC).isoformat()
        with transaction() as cursor:
            cursor.execute(
                "INSERT INTO conversation (id, e164, service_id, name, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (conversation_id, e164, service_id, name, now),
            )
        return Conversation(
            id=conversation_id,
            e164=e164,
            service_id=service_id,
            name=name,
            created_at=now,
        )

    @staticmethod
    def get_by_id(conversation_id: str) -> "Conversation | None":
        db = get_db()
        row = db.execute(
            f"SELECT {_CONVERSATION_COLUMNS} FROM conversation WHERE id = ?",
            (conversation_id,),
        ).fetchone()
        return Conversation._from_row(row) if row else None

    @staticmethod
    def lookup(identifier: str | None) -> "Conversation | None":
        """Find a conversation by id, E.164 number, or service id.

        Returns None for empty or unknown identifiers.
        """
        if not identifier:
            return None
        db = get_db()
        row = db.execute(
            f"SELECT {_CONVERSATION_COLUMNS} FROM conversation "
            "WHERE id = ? OR e164 = ? OR service_id = ? "
            "ORDER BY CASE WHEN id = ? THEN 0 ELSE 1 END LIMIT 1",
            (identifier, identifier, identifier, identifier),
        ).fetchone()
        return Conversation._from_row(row) if row else None

    @staticmethod
    def list_all() -> list["Conversation"]:
        db = get_db()
        rows = db.execute(
            f"SELECT {_CONVERSATION_COLUMNS} FROM conversation ORDER BY id"
        ).fetchall()
        return [Conversation._from_row(row) for row in rows]
