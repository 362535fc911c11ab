"""Database connection and transaction handling using APSW."""

import os
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import apsw
from flask import current_app, g

SCHEMA_PATH = Path(__file__).parent.parent.parent / "database" / "schema.sql"


def _connect(db_path: str) -> apsw.Connection:
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = apsw.Connection(db_path)
    conn.execute("PRAGMA busy_timeout = 5000;")
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.execute("PRAGMA journal_mode = WAL;")
    return conn


def get_db() -> apsw.Connection:
    """Get the database connection for the current app context."""
    if "db" not in g:
        g.db = _connect(current_app.config["DATABASE_PATH"])
    return g.db


def close_db(e=None) -> None:
    """Close the database connection at the end of the app context."""
    db = g.pop("db", None)
    if db is not None:
        db.close()


@contextmanager
def _transaction_on(db: apsw.Connection) -> Generator[apsw.Cursor]:
    cursor = db.cursor()
    cursor.execute("BEGIN IMMEDIATE;")
    try:
        yield cursor
        cursor.execute("COMMIT;")
    except Exception:
        cursor.execute("ROLLBACK;")
        raise


@contextmanager
def transaction() -> Generator[apsw.Cursor]:
    """Context manager for database transactions.

    Automatically commits on success, rolls back on exception.
    """
    with _transaction_on(get_db()) as cursor:
        yield cursor


def _apply_schema(db: apsw.Connection) -> None:
    with open(SCHEMA_PATH) as f:
        for _ in db.execute(f.read()):
            pass


def init_db() -> None:
    """Initialize the database with the schema."""
    _apply_schema(get_db())


# ---------------------------------------------------------------------------
# Standalone access (CLI commands that run without a Flask app)
# ---------------------------------------------------------------------------

_standalone: apsw.Connection | None = None


def get_db_path() -> str:
    """Resolve the database path from the environment or the project root."""
    db_path = os.environ.get("SENDSTATE_DB")
    if db_path:
        return db_path
    if "SENDSTATE_ROOT" in os.environ:
        project_root = Path(os.environ["SENDSTATE_ROOT"])
    else:
        source_root = Path(__file__).parent.parent.parent
        if (source_root / "src" / "sendstate" / "__init__.py").exists():
            project_root = source_root
        else:
            project_root = Path.cwd()
    return str(project_root / "instance" / "sendstate.sqlite3")


def get_standalone_db() -> apsw.Connection:
    global _standalone
    if _standalone is None:
        _standalone = _connect(get_db_path())
    return _standalone


def close_standalone_db() -> None:
    global _standalone
    if _standalone is not None:
        _standalone.close()
        _standalone = None


@contextmanager
def standalone_transaction() -> Generator[apsw.Cursor]:
    with _transaction_on(get_standalone_db()) as cursor:
        yield cursor


def init_db_at(db_path: str) -> None:
    """Initialize the schema in the database at ``db_path``."""
    conn = _connect(db_path)
    try:
        _apply_schema(conn)
    finally:
        conn.close()
