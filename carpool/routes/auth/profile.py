from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from carpool.core.database import get_db
from carpool.dependencies.auth import get_approved_user
from carpool.models.user.user import User
from carpool.schemas.user.child import ChildCreate, ChildUpdate, ChildOut
from carpool.schemas.user.user import UserUpdate, ProfileOut
from carpool.services.auth import child_service
from carpool.services.auth.profile_service import ProfileService

router = APIRouter(prefix="/me", tags=["Profile"])


@router.get("", response_model=ProfileOut)
async def get_my_profile(
    current_user: User = Depends(get_approved_user),
    db: AsyncSession = Depends(get_db)
):
    return await ProfileService.get_user_by_id(current_user.id, db)


@router.put("", response_model=ProfileOut)
async def update_my_profile(
    data: UserUpdate,
    current_user: User = Depends(get_approved_user),
    db: AsyncSession = Depends(get_db)
):
    return await ProfileService.update_user_profile(current_user.id, data, db)


@router.get("/children", response_model=List[ChildOut])
async def list_my_children(
    current_user: User = Depends(get_approved_user),
    db: AsyncSession = Depends(get_db)
):
    return await child_service.list_children(db, current_user)


@router.post("/children", response_model=ChildOut, status_code=201)
async def add_my_child(
    data: ChildCreate,
    current_user: User = Depends(get_approved_user),
    db: AsyncSession = Depends(get_db)
):
    return await child_service.add_child(db, data, current_user)


@router.put("/children/{child_id}", response_model=ChildOut)
async def update_my_child(
    child_id: int,
    data: ChildUpdate,
    current_user: User = Depends(get_approved_user),
    db: AsyncSession = Depends(get_db)
):
    return await child_service.update_child(db, child_id, data, current_user)


@router.delete("/children/{child_id}")
async def delete_my_child(
    child_id: int,
    current_user: User = Depends(get_approved_user),
    db: AsyncSession = Depends(get_db)
):
    await child_service.delete_child(db, child_id, current_user)
    return {"detail": "Child removed"}
