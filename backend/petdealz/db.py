import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are opened from the request threadpool and upload workers.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, echo=False, connect_args=connect_args)


def check_connection(engine: Engine):
    """Open a connection and run a trivial query; raises if the store is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def create_db_and_tables(engine: Engine):
    # Table classes must be imported so they register on SQLModel.metadata.
    from petdealz.models import listing_db, media_db, session_db, user_db  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables ready")
