from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# Execution option marking connections whose transactions write
WRITE_TRANSACTION = "carpark_write"


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    engine = create_async_engine(url, echo=echo)

    if engine.dialect.name == "sqlite":
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        # Writers take the write lock when the transaction starts, so concurrent
        # writers queue on the busy timeout instead of failing with
        # "database is locked". Readers keep a plain deferred BEGIN.
        @event.listens_for(engine.sync_engine, "begin")
        def _begin(conn):
            if conn.get_execution_options().get(WRITE_TRANSACTION):
                conn.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                conn.exec_driver_sql("BEGIN")

    return engine


def writer_engine(engine: AsyncEngine) -> AsyncEngine:
    """The same engine and pool, with transactions marked as writes."""
    return engine.execution_options(**{WRITE_TRANSACTION: True})


async def init_db(engine: AsyncEngine):
    import carpark.models  # noqa: F401

    async with writer_engine(engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
