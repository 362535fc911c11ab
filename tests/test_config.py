import pytest

from sendstate.config import (
    INI_MAP,
    KEY_MAP,
    REGISTRY,
    ConfigType,
    default_config,
    parse_value,
    resolve_entry,
    serialize_value,
)


def test_every_registry_entry_is_mapped():
    for entry in REGISTRY:
        assert entry.key in KEY_MAP
    mapped = {key for key in INI_MAP.values() if key is not None}
    assert mapped == {entry.key for entry in REGISTRY}


def test_resolve_entry():
    entry = resolve_entry("account.our_conversation_id")
    assert entry is not None
    assert entry.type is ConfigType.STRING
    assert resolve_entry("nope.nothing") is None


@pytest.mark.parametrize(
    ("key", "raw", "expected"),
    [
        ("migration.batch_size", "25", 25),
        ("migration.on_load", "yes", True),
        ("migration.on_load", "off", False),
        ("logging.level", "DEBUG", "DEBUG"),
    ],
)
def test_parse_value(key, raw, expected):
    assert parse_value(resolve_entry(key), raw) == expected


def test_parse_value_rejects_bad_int():
    with pytest.raises(ValueError):
        parse_value(resolve_entry("migration.batch_size"), "many")


def test_serialize_value():
    assert serialize_value(resolve_entry("migration.on_load"), True) == "true"
    assert serialize_value(resolve_entry("server.port"), 5300) == "5300"


def test_default_config():
    defaults = default_config()
    assert defaults["MIGRATION_BATCH_SIZE"] == 100
    assert defaults["MIGRATION_ON_LOAD"] is True
    assert defaults["OUR_CONVERSATION_ID"] == ""


def test_defaults_survive_serialize_and_parse():
    for entry in REGISTRY:
        raw = serialize_value(entry, entry.default)
        assert parse_value(entry, raw) == entry.default
