"""Persisting legacy send-attribute migration for stored messages."""

import logging
from dataclasses import dataclass

from flask import current_app

from sendstate.messages.legacy import migrate_legacy_send_attributes
from sendstate.models.conversation import Conversation
from sendstate.models.message import Message

log = logging.getLogger("sendstate.migration")


@dataclass
class MigrationReport:
    migrated: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.migrated + self.skipped + self.failed


def _our_conversation_id(our_conversation_id: str | None) -> str:
    value = our_conversation_id or current_app.config.get("OUR_CONVERSATION_ID", "")
    if not value:
        raise ValueError("account.our_conversation_id is not configured")
    return value


def migrate_message(
    message: Message,
    our_conversation_id: str | None = None,
    dry_run: bool = False,
) -> bool:
    """Migrate one message's legacy send attributes and store the result.

    Returns False when the message needs no migration, including when send
    state was stored after ``message`` was loaded; existing send state is
    left untouched.
    """
    send_state = migrate_legacy_send_attributes(
        message.legacy_record(),
        Conversation.lookup,
        _our_conversation_id(our_conversation_id),
    )
    if send_state is None:
        return False

    if dry_run:
        message.send_state = send_state
    elif not message.save_migrated_send_state(send_state):
        log.debug("Message %s already has send state, skipping", message.id)
        return False
    log.debug("Migrated message %s (%d recipient(s))", message.id, len(send_state))
    return True


def load_message(message_id: str) -> Message | None:
    """Load a message, migrating legacy send attributes on first load."""
    message = Message.get_by_id(message_id)
    if message is None:
        return None
    if not current_app.config.get("MIGRATION_ON_LOAD", True):
        return message
    if not current_app.config.get("OUR_CONVERSATION_ID"):
        log.warning("Skipping migration of %s: no our_conversation_id", message.id)
        return message
    migrate_message(message)
    return message


def migrate_pending(
    batch_size: int | None = None,
    our_conversation_id: str | None = None,
    dry_run: bool = False,
) -> MigrationReport:
    """Migrate every stored message that still lacks send state."""
    batch_size = batch_size or current_app.config.get("MIGRATION_BATCH_SIZE", 100)
    our_id = _our_conversation_id(our_conversation_id)
    report = MigrationReport()
    last_id = ""

    while True:
        messages = Message.list_needing_migration(limit=batch_size, after_id=last_id)
        if not messages:
            break

        log.info("Processing %d message(s)", len(messages))
        for message in messages:
            last_id = message.id
            try:
                if migrate_message(message, our_id, dry_run=dry_run):
                    report.migrated += 1
                else:
                    report.skipped += 1
            except Exception:
                log.exception("Failed to migrate message %s", message.id)
                report.failed += 1

    log.info(
        "Migration finished (migrated=%d, skipped=%d, failed=%d%s)",
        report.migrated,
        report.skipped,
        report.failed,
        ", dry run" if dry_run else "",
    )
    return report
