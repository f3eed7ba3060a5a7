import asyncio
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-for-hs256")

import logfire  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import therapy_booking.models  # noqa: E402,F401
from therapy_booking.database import Base  # noqa: E402

logfire.configure(send_to_logfire=False, console=False)


def make_test_engine():
    return create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)


@pytest.fixture
def run_db():
    """Run an async scenario against a fresh in-memory database.

    The scenario receives an ``AsyncSession``; its return value is passed back.
    """

    def run(scenario):
        async def runner():
            engine = make_test_engine()
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
            try:
                async with session_factory() as session:
                    return await scenario(session)
            finally:
                await engine.dispose()

        return asyncio.run(runner())

    return run
