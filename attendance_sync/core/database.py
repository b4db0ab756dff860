"""
Local SQLite persistence setup.

The engine is built explicitly and owned by the application container; nothing
here keeps a process-wide database handle.
"""

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from attendance_sync.core.logging import get_logger

# Table metadata must be registered before create_all
from attendance_sync.models import attendance  # noqa: F401

logger = get_logger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create the engine for the device-local database.

    SQLite connections are shared with the threadpool that runs blocking
    store calls, so same-thread checking is disabled. In-memory databases
    use a single static connection so every session sees the same data.
    """
    connect_args = {}
    kwargs = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool

    return create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)


def create_db_and_tables(engine: Engine) -> None:
    logger.info("Creating local attendance tables if missing")
    SQLModel.metadata.create_all(engine)

