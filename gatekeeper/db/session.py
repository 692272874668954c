from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gatekeeper.config import Settings, settings
from gatekeeper.db.base import Base


def build_engine(conf: Settings):
    kwargs = {"echo": conf.debug}
    if conf.database_null_pool:
        kwargs["poolclass"] = NullPool
    engine = create_async_engine(conf.database_url, **kwargs)
    if engine.url.get_backend_name() == "sqlite":
        # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; let SQLAlchemy emit it
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


engine = build_engine(settings)
async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    import gatekeeper.models  # noqa: F401 - register tables on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
