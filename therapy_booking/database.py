from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from therapy_booking.config import settings


# Create async engine (for FastAPI routes)
# Set echo=False to disable SQL query logging (too verbose for development)
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
)

# Create async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# Columns that older deployments of the appointments table were created without.
APPOINTMENT_MIGRATION_STEPS = [
    ("notes", "ALTER TABLE appointments ADD COLUMN notes TEXT"),
    ("payment_status", "ALTER TABLE appointments ADD COLUMN payment_status VARCHAR(20) DEFAULT 'PENDING'"),
    ("cancellation_reason", "ALTER TABLE appointments ADD COLUMN cancellation_reason TEXT"),
    ("cancellation_fee", "ALTER TABLE appointments ADD COLUMN cancellation_fee NUMERIC(10, 2) DEFAULT 0"),
    (
        "cancellation_deadline_hours",
        "ALTER TABLE appointments ADD COLUMN cancellation_deadline_hours INTEGER DEFAULT 24",
    ),
    ("cancelled_at", "ALTER TABLE appointments ADD COLUMN cancelled_at TIMESTAMP"),
]


def upgrade_appointment_schema(connection: Connection) -> list[str]:
    """Bring a legacy appointments table up to the current row shape.

    Adds missing columns, upper-cases legacy lowercase statuses and fills
    empty payment statuses. Returns the names of the columns that were added.
    """
    inspector = inspect(connection)

    if "appointments" not in inspector.get_table_names():
        return []

    existing_columns = {column["name"] for column in inspector.get_columns("appointments")}
    added = []
    for column_name, statement in APPOINTMENT_MIGRATION_STEPS:
        if column_name not in existing_columns:
            connection.execute(text(statement))
            added.append(column_name)

    connection.execute(text("UPDATE appointments SET status = UPPER(status) WHERE status <> UPPER(status)"))
    connection.execute(text("UPDATE appointments SET payment_status = 'PENDING' WHERE payment_status IS NULL"))
    return added


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(upgrade_appointment_schema)


async def close_db():
    """Close database connections."""
    await engine.dispose()
