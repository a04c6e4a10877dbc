from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from fastapi import HTTPException, status
from carpool.core.config import settings
from carpool.core.logger import logger

db_url = settings.DATABASE_URL

engine = create_async_engine(db_url, echo=False)
SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False,
    class_=AsyncSession
)

Base = declarative_base()

async def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        await db.close()


def _store_failure(action: str) -> HTTPException:
    logger.exception(f"Store failure while trying to {action}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Could not save changes"
    )


async def commit_or_rollback(db: AsyncSession, action: str):
    """Commit the session; on a store failure roll back and surface a 503.

    Integrity errors are left to the caller, which knows which unique
    constraint a duplicate maps to.
    """
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise
    except SQLAlchemyError:
        await db.rollback()
        raise _store_failure(action)


async def execute_or_rollback(db: AsyncSession, statement, action: str):
    """Run a write statement inside the open transaction, with the same failure handling as commits."""
    try:
        return await db.execute(statement)
    except SQLAlchemyError:
        await db.rollback()
        raise _store_failure(action)
