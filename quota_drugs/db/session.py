from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quota_drugs.config.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    pool_pre_ping=True,
)

# Objects stay readable after commit; repositories re-fetch what they return
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
