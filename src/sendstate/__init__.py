"""sendstate - Per-recipient message delivery state."""

from pathlib import Path
from typing import Any

import apsw
from flask import Flask

from sendstate.config import KEY_MAP, REGISTRY, default_config, parse_value
from sendstate.db import get_db_path


def create_app(test_config: dict[str, Any] | None = None) -> Flask:
    """Application factory for sendstate."""
    db_path = get_db_path()
    instance_path = Path(db_path).parent
    instance_path.mkdir(parents=True, exist_ok=True)

    app = Flask(__name__, instance_path=str(instance_path), instance_relative_config=True)

    # Registry defaults before DB config is loaded
    app.config.from_mapping(default_config())
    app.config.from_mapping(DATABASE_PATH=db_path)

    if test_config is not None:
        app.config.from_mapping(test_config)
    else:
        _load_config_from_db(app)

    from sendstate.db import close_db

    app.teardown_appcontext(close_db)

    from sendstate.blueprints import api

    app.register_blueprint(api.bp)

    return app


def _load_config_from_db(app: Flask) -> None:
    """Load configuration from the database into Flask app.config."""
    db_path = app.config["DATABASE_PATH"]

    try:
        conn = apsw.Connection(db_path, flags=apsw.SQLITE_OPEN_READONLY)
    except apsw.CantOpenError:
        # Database doesn't exist yet (init-db hasn't been run)
        return

    try:
        rows = conn.execute("SELECT key, value FROM app_setting").fetchall()
    except apsw.SQLError:
        # Table doesn't exist yet
        conn.close()
        return

    db_values = {str(r[0]): str(r[1]) for r in rows}
    conn.close()

    for entry in REGISTRY:
        flask_key = KEY_MAP.get(entry.key)
        if not flask_key:
            continue

        raw = db_values.get(entry.key)
        if raw is not None:
            app.config[flask_key] = parse_value(entry, raw)
