from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from supportdesk.core.config import settings
from supportdesk.db.base import Base

engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
)

AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session

async def init_db(bind: AsyncEngine = engine) -> None:
    # model modules must be imported so their tables are on the metadata
    import supportdesk.db.models  # noqa: F401
    from supportdesk.customer_company.service import customer_company_service

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(customer_company_service.metadata.create_all)
