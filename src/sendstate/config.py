"""Configuration registry and type system.

Every configurable setting is declared here with its key, type, default and
description.  The registry is the single source of truth for what settings
exist.
"""

from dataclasses import dataclass
from enum import Enum


class ConfigType(Enum):
    STRING = "string"
    INT = "int"
    BOOL = "bool"


@dataclass(frozen=True, slots=True)
class ConfigEntry:
    key: str
    type: ConfigType
    default: str | int | bool
    description: str


# ---------------------------------------------------------------------------
# Registry -- every known setting
# ---------------------------------------------------------------------------

REGISTRY: list[ConfigEntry] = [
    # -- server --
    ConfigEntry("server.host", ConfigType.STRING, "0.0.0.0", "Bind address for production server"),
    ConfigEntry("server.port", ConfigType.INT, 5300, "Port for production server"),
    ConfigEntry("server.dev_host", ConfigType.STRING, "127.0.0.1", "Bind address for dev server"),
    ConfigEntry("server.dev_port", ConfigType.INT, 5300, "Port for dev server"),
    ConfigEntry("server.debug", ConfigType.BOOL, False, "Enable Flask debug mode"),
    # -- account --
    ConfigEntry(
        "account.our_conversation_id",
        ConfigType.STRING,
        "",
        "Conversation id of the sending account (its own linked-device copy)",
    ),
    # -- migration --
    ConfigEntry(
        "migration.batch_size", ConfigType.INT, 100, "Messages to migrate per batch"
    ),
    ConfigEntry(
        "migration.on_load",
        ConfigType.BOOL,
        True,
        "Migrate legacy send attributes when a message is first loaded",
    ),
    # -- logging --
    ConfigEntry("logging.level", ConfigType.STRING, "INFO", "Log level for CLI commands"),
]

# Fast lookup by key
_REGISTRY_MAP: dict[str, ConfigEntry] = {e.key: e for e in REGISTRY}


def resolve_entry(key: str) -> ConfigEntry | None:
    """Look up a registry entry by key."""
    return _REGISTRY_MAP.get(key)


# ---------------------------------------------------------------------------
# Value parsing / serialization
# ---------------------------------------------------------------------------


def parse_value(entry: ConfigEntry, raw: str) -> str | int | bool:
    """Parse a raw string value according to the entry's type."""
    match entry.type:
        case ConfigType.STRING:
            return raw
        case ConfigType.INT:
            return int(raw)
        case ConfigType.BOOL:
            return raw.lower() in ("true", "1", "yes", "on")


def serialize_value(entry: ConfigEntry, value: str | int | bool) -> str:
    """Serialize a typed value to a string for storage."""
    match entry.type:
        case ConfigType.BOOL:
            return "true" if value else "false"
        case _:
            return str(value)


# ---------------------------------------------------------------------------
# Mapping from registry keys to Flask app.config keys
# ---------------------------------------------------------------------------

KEY_MAP: dict[str, str] = {
    "server.host": "HOST",
    "server.port": "PORT",
    "server.dev_host": "DEV_HOST",
    "server.dev_port": "DEV_PORT",
    "server.debug": "DEBUG",
    "account.our_conversation_id": "OUR_CONVERSATION_ID",
    "migration.batch_size": "MIGRATION_BATCH_SIZE",
    "migration.on_load": "MIGRATION_ON_LOAD",
    "logging.level": "LOG_LEVEL",
}


# ---------------------------------------------------------------------------
# INI section/key -> registry key mapping (for config import)
# ---------------------------------------------------------------------------

INI_MAP: dict[tuple[str, str], str | None] = {
    ("server", "HOST"): "server.host",
    ("server", "PORT"): "server.port",
    ("server", "DEV_HOST"): "server.dev_host",
    ("server", "DEV_PORT"): "server.dev_port",
    ("server", "DEBUG"): "server.debug",
    ("database", "PATH"): None,  # handled specially -- not a config setting
    ("account", "OUR_CONVERSATION_ID"): "account.our_conversation_id",
    ("migration", "BATCH_SIZE"): "migration.batch_size",
    ("migration", "ON_LOAD"): "migration.on_load",
    ("logging", "LEVEL"): "logging.level",
}


def default_config() -> dict[str, str | int | bool]:
    """Registry defaults keyed by Flask app.config name."""
    return {KEY_MAP[e.key]: e.default for e in REGISTRY if e.key in KEY_MAP}
