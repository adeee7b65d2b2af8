# app/database.py
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings
from app.core.errors import DomainError, InternalError

logger = logging.getLogger(__name__)

settings = get_settings()

# ---------------------------------------------------------
# Postgres connection (via pooler)
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
#
# SQLite URLs (local runs, tests) skip all of the above.
# ---------------------------------------------------------


def serialize_sqlite_writers(engine: Engine) -> Engine:
    """
    Make every SQLite transaction take the write lock up front.

    pysqlite only sends BEGIN before the first write, so a read-then-write
    check (booking overlap, FOR UPDATE, which SQLite drops) would run
    unlocked. BEGIN IMMEDIATE makes concurrent transactions queue instead.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(db_url: str, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for the given URL.

    Postgres gets the pooler-friendly settings; SQLite gets
    check_same_thread=False so FastAPI's threadpool can share it, and
    immediate transactions (see serialize_sqlite_writers).
    """
    if db_url.startswith("sqlite"):
        return serialize_sqlite_writers(
            create_engine(
                db_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        )

    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"

    return create_engine(
        db_url,
        echo=echo,  # set to True if you want to debug SQL queries
        pool_pre_ping=True,
        pool_size=1,
        max_overflow=0,
    )


engine = build_engine(settings.DATABASE_URL)


def create_db_and_tables(bind: Engine | None = None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session


@contextmanager
def unit_of_work(session: Session) -> Iterator[Session]:
    """
    All-or-nothing transactional boundary for multi-step service operations.

    Commits when the block exits normally. Any exception rolls the whole
    transaction back; DomainError propagates unchanged, storage failures
    are surfaced as InternalError.

    Usage:

        with unit_of_work(session):
            ledger.reserve(session, product_id, 2)
            order_repo.create_order(session, order)
    """
    try:
        yield session
        session.commit()
    except DomainError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Transaction aborted by storage error")
        raise InternalError(f"Storage failure: {e.__class__.__name__}") from e
    except Exception:
        session.rollback()
        raise
