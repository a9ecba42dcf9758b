# src/presence_relay/init_db.py
"""Create the relay tables from the ORM metadata."""

from presence_relay.db.session import create_tables

if __name__ == "__main__":
    create_tables()
    print("Database initialized.")
