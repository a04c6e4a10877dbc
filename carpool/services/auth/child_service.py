from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from fastapi import HTTPException
from typing import List

from carpool.core.database import commit_or_rollback
from carpool.core.logger import logger
from carpool.models.user.child import Child
from carpool.models.user.user import User
from carpool.schemas.user.child import ChildCreate, ChildUpdate


async def list_children(db: AsyncSession, parent: User) -> List[Child]:
    result = await db.execute(
        select(Child).where(Child.parent_id == parent.id).order_by(Child.name)
    )
    return result.scalars().all()


async def get_own_child(db: AsyncSession, child_id: int, parent: User) -> Child:
    child = await db.get(Child, child_id)
    # Someone else's child is reported exactly like a missing one
    if not child or child.parent_id != parent.id:
        raise HTTPException(status_code=404, detail="Child not found")
    return child


async def add_child(db: AsyncSession, data: ChildCreate, parent: User) -> Child:
    name = data.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Child name is required")

    child = Child(parent_id=parent.id, name=name, phone=(data.phone or "").strip() or None)
    db.add(child)
    await commit_or_rollback(db, "add child")
    await db.refresh(child)
    logger.info(f"Child {child.id} added by user {parent.id}")
    return child


async def update_child(db: AsyncSession, child_id: int, data: ChildUpdate, parent: User) -> Child:
    child = await get_own_child(db, child_id, parent)

    update_fields = data.model_dump(exclude_unset=True)
    if not update_fields:
        raise HTTPException(status_code=400, detail="No fields to update.")
    if "name" in update_fields:
        update_fields["name"] = (update_fields["name"] or "").strip()
        if not update_fields["name"]:
            raise HTTPException(status_code=400, detail="Child name is required")
    if "phone" in update_fields:
        update_fields["phone"] = (update_fields["phone"] or "").strip() or None

    for key, value in update_fields.items():
        setattr(child, key, value)

    await commit_or_rollback(db, "update child")
    await db.refresh(child)
    return child


async def delete_child(db: AsyncSession, child_id: int, parent: User):
    child = await get_own_child(db, child_id, parent)
    await db.delete(child)
    await commit_or_rollback(db, "delete child")
    logger.info(f"Child {child_id} removed by user {parent.id}")
