from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException
from typing import List

from carpool.core.database import commit_or_rollback
from carpool.core.logger import logger
from carpool.models.groups.group import Group
from carpool.models.poi.poi import POI
from carpool.models.rides.ride_request import RideRequest, RideStatus
from carpool.models.user.user import User


class AdminService:
    @staticmethod
    async def list_users(db: AsyncSession, pending_only: bool = False) -> List[User]:
        query = select(User).order_by(User.created_at.desc(), User.id.desc())
        if pending_only:
            query = query.where(User.is_approved == False)  # noqa: E712
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def _get_user(db: AsyncSession, user_id: int) -> User:
        user = await db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    @staticmethod
    async def approve_user(db: AsyncSession, user_id: int, admin: User) -> User:
        user = await AdminService._get_user(db, user_id)
        if user.is_approved:
            return user

        user.is_approved = True
        await commit_or_rollback(db, "approve user")
        await db.refresh(user)
        logger.info(f"User {user_id} approved by admin {admin.id}")
        return user

    @staticmethod
    async def set_admin(db: AsyncSession, user_id: int, is_admin: bool, admin: User) -> User:
        if user_id == admin.id and not is_admin:
            raise HTTPException(status_code=400, detail="You cannot remove your own admin rights")

        user = await AdminService._get_user(db, user_id)
        if is_admin and not user.is_approved:
            raise HTTPException(status_code=400, detail="Approve the user before making them an admin")

        user.is_admin = is_admin
        await commit_or_rollback(db, "change admin flag")
        await db.refresh(user)
        logger.info(f"Admin flag of user {user_id} set to {is_admin} by admin {admin.id}")
        return user

    @staticmethod
    async def get_summary(db: AsyncSession) -> dict:
        total_users = await db.scalar(select(func.count()).select_from(User)) or 0
        pending_users = await db.scalar(
            select(func.count()).select_from(User).where(User.is_approved == False)  # noqa: E712
        ) or 0
        total_groups = await db.scalar(
            select(func.count()).select_from(Group).where(Group.archived == False)  # noqa: E712
        ) or 0
        active_pois = await db.scalar(
            select(func.count()).select_from(POI).where(POI.archived == False)  # noqa: E712
        ) or 0

        rows = await db.execute(
            select(RideRequest.status, func.count()).group_by(RideRequest.status)
        )
        rides_by_status = {s.value: 0 for s in RideStatus}
        for ride_status, count in rows.all():
            rides_by_status[RideStatus(ride_status).value] = count

        return {
            "total_users": total_users,
            "pending_users": pending_users,
            "total_groups": total_groups,
            "active_pois": active_pois,
            "rides_by_status": rides_by_status,
        }
