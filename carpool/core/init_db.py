import asyncio
from sqlalchemy import update

from carpool.core.config import settings
from carpool.core.database import engine, Base
from carpool.core.logger import logger
import carpool.models  # noqa: F401  registers every table on Base.metadata
from carpool.models.user.user import User

async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

        # Someone has to approve the first members
        if settings.BOOTSTRAP_ADMIN_EMAIL:
            result = await conn.execute(
                update(User)
                .where(User.email == settings.BOOTSTRAP_ADMIN_EMAIL.lower())
                .values(is_admin=True, is_approved=True)
            )
            if result.rowcount:
                logger.info(f"Bootstrap admin {settings.BOOTSTRAP_ADMIN_EMAIL} promoted")


if __name__ == "__main__":
    asyncio.run(init_db())
