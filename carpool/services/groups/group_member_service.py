from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from fastapi import HTTPException, status
from datetime import datetime
from typing import List

from carpool.core.database import commit_or_rollback
from carpool.core.logger import logger
from carpool.models.groups.group import Group
from carpool.models.groups.group_member import GroupMember
from carpool.models.user.user import User
from carpool.schemas.groups.group import GroupMembersResponse, GroupMemberOut


async def is_user_member(db: AsyncSession, group_id: int, user_id: int) -> bool:
    result = await db.execute(select(GroupMember.id).where(
        GroupMember.group_id == group_id,
        GroupMember.user_id == user_id
    ))
    return result.scalar_one_or_none() is not None


async def require_member(db: AsyncSession, group_id: int, user: User):
    if not await is_user_member(db, group_id, user.id):
        logger.warning(f"User {user.id} is not a member of group {group_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this group"
        )


async def get_user_group_ids(db: AsyncSession, user_id: int) -> List[int]:
    result = await db.execute(
        select(GroupMember.group_id).where(GroupMember.user_id == user_id)
    )
    return list(result.scalars().all())


async def get_user_groups(db: AsyncSession, user: User) -> List[Group]:
    """Active groups the user belongs to, by name."""
    result = await db.execute(
        select(Group)
        .join(GroupMember, GroupMember.group_id == Group.id)
        .where(GroupMember.user_id == user.id, Group.archived == False)  # noqa: E712
        .order_by(Group.name)
    )
    return result.scalars().all()


async def get_group_members(db: AsyncSession, group_id: int) -> GroupMembersResponse:
    result = await db.execute(
        select(GroupMember).where(GroupMember.group_id == group_id)
        .options(selectinload(GroupMember.user))
        .order_by(GroupMember.joined_at)
    )
    members = result.scalars().all()
    return GroupMembersResponse(
        group_id=group_id,
        members=[GroupMemberOut.model_validate(member) for member in members]
    )


async def add_member(db: AsyncSession, group_id: int, user_id: int) -> GroupMember:
    group = await db.get(Group, group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")

    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    if not user.is_approved:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only approved users can join a group"
        )

    if await is_user_member(db, group_id, user_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already in this group"
        )

    new_member = GroupMember(
        group_id=group_id,
        user_id=user_id,
        joined_at=datetime.utcnow()
    )
    db.add(new_member)
    try:
        await commit_or_rollback(db, "add group member")
    except IntegrityError:
        raise HTTPException(status_code=400, detail="User is already in this group")
    await db.refresh(new_member)

    logger.info(f"User {user_id} added to group {group_id}")
    return new_member


async def remove_member(db: AsyncSession, group_id: int, user_id: int):
    result = await db.execute(
        select(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id
        )
    )
    member = result.scalar_one_or_none()
    if not member:
        raise HTTPException(status_code=404, detail="Member not found")

    await db.delete(member)
    await commit_or_rollback(db, "remove group member")
    logger.info(f"User {user_id} removed from group {group_id}")
