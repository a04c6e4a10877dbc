from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from fastapi import HTTPException, status

from carpool.core.config import settings
from carpool.core.database import commit_or_rollback
from carpool.core.logger import logger
from carpool.core.security import hash_password
from carpool.models.user.user import User
from carpool.schemas.user.user import UserUpdate


class ProfileService:
    @staticmethod
    async def get_user_by_id(user_id: int, db: AsyncSession) -> User:
        result = await db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user

    @staticmethod
    async def update_user_profile(user_id: int, update_data: UserUpdate, db: AsyncSession) -> User:
        user = await ProfileService.get_user_by_id(user_id, db)

        update_fields = update_data.model_dump(exclude_unset=True)
        if not update_fields:
            raise HTTPException(status_code=400, detail="No fields to update.")

        for field in ("name", "phone", "home_address"):
            if field in update_fields:
                update_fields[field] = (update_fields[field] or "").strip()
                if not update_fields[field]:
                    raise HTTPException(status_code=400, detail=f"{field.replace('_', ' ').capitalize()} cannot be empty")

        if 'password' in update_fields:
            password = update_fields.pop('password')
            if user.auth_type != "local":
                raise HTTPException(status_code=400, detail="Password is managed by your sign-in provider")
            if len(password) < settings.PASSWORD_MIN_LENGTH:
                raise HTTPException(
                    status_code=400,
                    detail=f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
                )
            update_fields['hashed_password'] = hash_password(password)

        for key, value in update_fields.items():
            setattr(user, key, value)

        await commit_or_rollback(db, "update profile")
        await db.refresh(user)
        logger.info(f"User {user_id} updated their profile")
        return user
