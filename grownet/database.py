from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from grownet.config import settings


def build_engine(url: str) -> Engine:
    """Create an engine, applying the SQLite adjustments the app relies on.

    pysqlite defers BEGIN until the first DML statement, which breaks the
    SAVEPOINTs used for insert-or-retry. The event hooks below hand
    transaction control back to SQLAlchemy. Transactions open with
    BEGIN IMMEDIATE so concurrent writers queue on the busy timeout instead
    of failing when a read lock cannot be upgraded.
    """
    if make_url(url).get_backend_name() != "sqlite":
        return create_engine(url)

    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if make_url(url).database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    sqlite_engine = create_engine(url, **kwargs)

    @event.listens_for(sqlite_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine)


class Base(DeclarativeBase):
    pass
