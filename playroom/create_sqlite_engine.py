import pathlib

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from playroom.load_secrets import sqlite_path

if sqlite_path:
    file_path = pathlib.Path(sqlite_path)
else:
    file_path = pathlib.Path(__file__).parents[1]
    file_path /= "./playroom.sqlite3"
sqlite_url = f"sqlite+aiosqlite:///{file_path}"


def serialize_writes(engine: AsyncEngine) -> AsyncEngine:
    """Open every transaction with BEGIN IMMEDIATE

    SQLite ignores SELECT ... FOR UPDATE, so a read-modify-write takes the
    database write lock up front. A second writer waits on the busy timeout
    until the first one commits, then reads the committed document.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = serialize_writes(create_async_engine(url=sqlite_url, echo=False))
