from dataclasses import dataclass

import pytest
from click.testing import CliRunner

from sendstate import create_app
from sendstate.db import close_standalone_db, init_db


@dataclass
class FakeConversation:
    id: str


@pytest.fixture
def resolve():
    """Resolver over a tiny directory: legacy identifiers map to conversation ids."""
    directory = {
        "A": "A",
        "B": "B",
        "C": "C",
        "+15550001": "A",
        "svc-b": "B",
        "ME": "ME",
    }

    def _resolve(identifier: str | None) -> FakeConversation | None:
        if identifier is None:
            return None
        conversation_id = directory.get(identifier)
        return FakeConversation(conversation_id) if conversation_id else None

    return _resolve


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    path = tmp_path / "sendstate.sqlite3"
    monkeypatch.setenv("SENDSTATE_DB", str(path))
    yield path
    close_standalone_db()


@pytest.fixture
def app(db_path):
    app = create_app({"TESTING": True, "OUR_CONVERSATION_ID": "ME"})
    with app.app_context():
        init_db()
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner():
    return CliRunner()
