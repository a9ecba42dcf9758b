# tests/test_migrations.py
"""Tests that the Alembic history builds the relay schema."""

from sqlalchemy import create_engine, inspect

from presence_relay.core.settings import settings
from presence_relay.scripts.migrate import run_upgrade_head


def test_upgrade_head_creates_tables(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'relay.db'}"
    monkeypatch.setattr(settings, "database_url", url)
    monkeypatch.setattr(settings, "use_testing_database", False)

    run_upgrade_head()

    engine = create_engine(url)
    try:
        inspector = inspect(engine)
        assert {"connection", "message"} <= set(inspector.get_table_names())
        indexes = {index["name"] for index in inspector.get_indexes("message")}
        assert "ix_message_conversation_created" in indexes
    finally:
        engine.dispose()
