from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from fastapi import HTTPException
from typing import List

from carpool.core.database import commit_or_rollback
from carpool.core.logger import logger
from carpool.models.groups.group import Group
from carpool.schemas.groups.group import GroupCreate, GroupUpdate


class GroupService:
    @staticmethod
    async def get_group(db: AsyncSession, group_id: int) -> Group:
        group = await db.get(Group, group_id)
        if not group:
            raise HTTPException(status_code=404, detail="Group not found")
        return group

    @staticmethod
    async def list_groups(db: AsyncSession, include_archived: bool = True) -> List[Group]:
        query = select(Group).order_by(Group.name)
        if not include_archived:
            query = query.where(Group.archived == False)  # noqa: E712
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def create_group(db: AsyncSession, data: GroupCreate) -> Group:
        name = data.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Group name is required")

        group = Group(name=name)
        db.add(group)
        await commit_or_rollback(db, "create group")
        await db.refresh(group)
        logger.info(f"Group {group.id} '{name}' created")
        return group

    @staticmethod
    async def update_group(db: AsyncSession, group_id: int, data: GroupUpdate) -> Group:
        group = await GroupService.get_group(db, group_id)

        update_fields = data.model_dump(exclude_unset=True)
        if not update_fields:
            raise HTTPException(status_code=400, detail="No fields to update.")
        if "name" in update_fields:
            update_fields["name"] = (update_fields["name"] or "").strip()
            if not update_fields["name"]:
                raise HTTPException(status_code=400, detail="Group name is required")

        for key, value in update_fields.items():
            setattr(group, key, value)

        await commit_or_rollback(db, "update group")
        await db.refresh(group)
        logger.info(f"Group {group_id} updated: {sorted(update_fields)}")
        return group
