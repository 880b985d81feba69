from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from config import DATABASE_URL




engine = create_async_engine(DATABASE_URL)

new_session = async_sessionmaker(engine, expire_on_commit=False)


class Model(DeclarativeBase):
    pass


def _register_models():
    from models import auth, event, application, notification  # noqa: F401


async def create_tables(bind: AsyncEngine = engine):
    _register_models()
    async with bind.begin() as conn:
        await conn.run_sync(Model.metadata.create_all)


async def delete_tables(bind: AsyncEngine = engine):
    _register_models()
    async with bind.begin() as conn:
        await conn.run_sync(Model.metadata.drop_all)
