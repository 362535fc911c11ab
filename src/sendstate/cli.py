"""CLI entry point for sendstate-admin."""

import configparser
import json
import logging
import os
import stat
import sys
from datetime import UTC, datetime

import click

from sendstate.config import (
    INI_MAP,
    REGISTRY,
    parse_value,
    resolve_entry,
    serialize_value,
)
from sendstate.db import (
    close_standalone_db,
    get_db_path,
    get_standalone_db,
    init_db_at,
    standalone_transaction,
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def _make_app():
    """Create a Flask app for commands that need app context."""
    from sendstate import create_app

    return create_app()


def _configure_logging(level: str, verbose: bool = False) -> None:
    if verbose:
        resolved = logging.DEBUG
    else:
        resolved = logging.getLevelNamesMapping().get(str(level).upper(), logging.INFO)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Config helpers (standalone DB, no Flask)
# ---------------------------------------------------------------------------


def _db_get(key: str) -> str | None:
    """Read a single value from app_setting."""
    db = get_standalone_db()
    row = db.execute("SELECT value FROM app_setting WHERE key = ?", (key,)).fetchone()
    return str(row[0]) if row else None


def _db_get_all() -> dict[str, str]:
    """Read all app_setting rows into a dict."""
    db = get_standalone_db()
    rows = db.execute("SELECT key, value FROM app_setting ORDER BY key").fetchall()
    return {str(r[0]): str(r[1]) for r in rows}


def _db_set(key: str, value: str) -> None:
    """Upsert a value into app_setting."""
    with standalone_transaction() as cursor:
        cursor.execute(
            "INSERT INTO app_setting (key, value, description) VALUES (?, ?, '') "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx: click.Context, verbose: bool):
    """sendstate administration tool."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


# ---- config group --------------------------------------------------------


@main.group()
def config():
    """View and manage configuration settings."""


@config.command("list")
def config_list():
    """Show all settings with their effective values."""
    db_values = _db_get_all()

    current_group = ""
    for entry in REGISTRY:
        group = entry.key.split(".")[0]
        if group != current_group:
            if current_group:
                click.echo()
            click.echo(click.style(f"[{group}]", bold=True))
            current_group = group

        raw = db_values.get(entry.key)
        if raw is not None:
            value = raw
            source = "db"
        else:
            value = serialize_value(entry, entry.default)
            source = "default"

        display = value if value else "(empty)"

        source_tag = click.style(f"[{source}]", fg="cyan" if source == "db" else "yellow")
        click.echo(f"  {entry.key} = {display}  {source_tag}")
        click.echo(click.style(f"    {entry.description}", dim=True))

    close_standalone_db()


@config.command("get")
@click.argument("key")
def config_get(key: str):
    """Get the effective value of a setting."""
    entry = resolve_entry(key)
    if not entry:
        click.echo(f"Unknown setting: {key}", err=True)
        sys.exit(1)
    assert entry is not None

    raw = _db_get(key)
    if raw is not None:
        value = parse_value(entry, raw)
    else:
        value = entry.default

    if isinstance(value, bool):
        click.echo("true" if value else "false")
    else:
        click.echo(value if value else "(empty)")

    close_standalone_db()


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set a configuration value in the database."""
    entry = resolve_entry(key)
    if not entry:
        click.echo(f"Unknown setting: {key}", err=True)
        sys.exit(1)
    assert entry is not None

    # Validate by parsing
    try:
        parse_value(entry, value)
    except (ValueError, TypeError) as exc:
        click.echo(f"Invalid value for {key} ({entry.type.value}): {exc}", err=True)
        sys.exit(1)

    _db_set(key, value)
    click.echo(f"{key} = {value}")
    close_standalone_db()


@config.command("export")
@click.argument("output_file", type=click.Path())
def config_export(output_file: str):
    """Export all settings as a shell script of config set calls."""
    db_values = _db_get_all()
    lines = [
        "#!/bin/bash",
        "# Configuration export for sendstate",
        f"# Generated: {datetime.now(UTC).strftime('%Y-%m-%d %H:%M:%S UTC')}",
        "",
    ]

    for entry in REGISTRY:
        raw = db_values.get(entry.key)
        if raw is not None:
            value = raw
        else:
            value = serialize_value(entry, entry.default)
        lines.append(f"sendstate-admin config set {entry.key} '{value}'")

    with open(output_file, "w") as f:
        f.write("\n".join(lines) + "\n")
    os.chmod(output_file, os.stat(output_file).st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    click.echo(f"Exported {len(REGISTRY)} settings to {output_file}")
    close_standalone_db()


@config.command("import")
@click.argument("ini_file", type=click.Path(exists=True))
def config_import(ini_file: str):
    """Import settings from an INI config file."""
    cfg = configparser.ConfigParser()
    cfg.read(ini_file)

    imported = 0

    for section in cfg.sections():
        for ini_key, value in cfg.items(section):
            lookup = (section, ini_key.upper())
            registry_key = INI_MAP.get(lookup)
            if registry_key is None:
                if lookup in INI_MAP:
                    # Explicitly skipped (e.g. database.PATH)
                    click.echo(f"  (skip) [{section}] {ini_key}")
                else:
                    click.echo(f"  (unknown) [{section}] {ini_key}")
                continue
            _db_set(registry_key, value)
            click.echo(f"  {registry_key} = {value}")
            imported += 1

    click.echo(f"\nImported {imported} settings.")
    close_standalone_db()


# ---- conversation group --------------------------------------------------


@main.group()
def conversation():
    """Manage the conversation directory."""


@conversation.command("add")
@click.argument("conversation_id")
@click.option("--e164", default=None, help="Phone number in E.164 format")
@click.option("--service-id", default=None, help="Account service id")
@click.option("--name", default=None, help="Display name")
def conversation_add(conversation_id: str, e164: str | None, service_id: str | None, name: str | None):
    """Add a conversation that legacy identifiers can resolve to."""
    import apsw

    from sendstate.models.conversation import Conversation

    app = _make_app()
    with app.app_context():
        try:
            Conversation.create(conversation_id, e164=e164, service_id=service_id, name=name)
        except apsw.ConstraintError:
            click.echo(f"Conversation already exists: {conversation_id}", err=True)
            sys.exit(1)
    click.echo(f"Added conversation {conversation_id}")


@conversation.command("list")
def conversation_list():
    """List known conversations."""
    from sendstate.models.conversation import Conversation

    app = _make_app()
    with app.app_context():
        for conv in Conversation.list_all():
            details = ", ".join(
                f"{label}={value}"
                for label, value in (
                    ("e164", conv.e164),
                    ("service_id", conv.service_id),
                    ("name", conv.name),
                )
                if value
            )
            click.echo(f"{conv.id}  {details}" if details else conv.id)


# ---- admin commands ------------------------------------------------------


@main.command("init-db")
def init_db_command():
    """Initialize the database schema."""
    db_path = get_db_path()
    init_db_at(db_path)
    click.echo("Database initialized.")


@main.command("migrate")
@click.option("--batch-size", "-b", type=int, default=None, help="Messages per batch")
@click.option("--our-conversation-id", default=None, help="Override account.our_conversation_id")
@click.option("--dry-run", is_flag=True, help="Compute send state without saving it")
@click.pass_context
def migrate_command(
    ctx: click.Context,
    batch_size: int | None,
    our_conversation_id: str | None,
    dry_run: bool,
):
    """Migrate legacy send attributes of all stored outgoing messages."""
    from sendstate.services.migration import migrate_pending

    app = _make_app()
    _configure_logging(app.config["LOG_LEVEL"], ctx.obj.get("verbose", False))
    with app.app_context():
        try:
            report = migrate_pending(
                batch_size=batch_size,
                our_conversation_id=our_conversation_id,
                dry_run=dry_run,
            )
        except ValueError as exc:
            click.echo(str(exc), err=True)
            sys.exit(1)

    verb = "Would migrate" if dry_run else "Migrated"
    click.echo(
        f"{verb} {report.migrated} message(s); "
        f"{report.skipped} skipped, {report.failed} failed."
    )
    if report.failed:
        sys.exit(1)


@main.command("show")
@click.argument("message_id")
def show_command(message_id: str):
    """Show a message's per-recipient send state."""
    from sendstate.messages.send_state import send_state_map_to_dict
    from sendstate.services.migration import load_message

    app = _make_app()
    with app.app_context():
        message = load_message(message_id)
        if message is None:
            click.echo(f"Message not found: {message_id}", err=True)
            sys.exit(1)
        click.echo(json.dumps(send_state_map_to_dict(message.send_state), indent=2, sort_keys=True))
