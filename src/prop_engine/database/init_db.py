"""Database initialization script.

Usage:
    python -m prop_engine.database.init_db
"""

if __name__ == "__main__":
    from ..utils import setup_logging
    from .session import get_engine, init_db

    setup_logging()
    init_db()
    print(f"Database initialized at {get_engine().url.render_as_string(hide_password=True)}")
