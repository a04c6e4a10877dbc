from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from carpool.core.database import get_db
from carpool.dependencies.auth import require_admin
from carpool.models.user.user import User
from carpool.routes.poi.poi import get_poi_service
from carpool.schemas.admin.admin import AdminSummaryResponse, AdminUserUpdate
from carpool.schemas.groups.group import (
    GroupCreate, GroupUpdate, GroupOut, GroupMemberCreate, GroupMemberOut, GroupMembersResponse
)
from carpool.schemas.poi.poi import POICreate, POIUpdate, POIOut
from carpool.schemas.user.user import ProfileOut
from carpool.services.admin.admin_service import AdminService
from carpool.services.groups import group_member_service
from carpool.services.groups.group_service import GroupService
from carpool.services.poi.poi_service import POIService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/summary", response_model=AdminSummaryResponse)
async def admin_summary(db: AsyncSession = Depends(get_db), admin: User = Depends(require_admin)):
    return await AdminService.get_summary(db)


# Users

@router.get("/users", response_model=List[ProfileOut])
async def list_users(
    pending: bool = False,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    return await AdminService.list_users(db, pending_only=pending)


@router.post("/users/{user_id}/approve", response_model=ProfileOut)
async def approve_user(user_id: int, db: AsyncSession = Depends(get_db), admin: User = Depends(require_admin)):
    return await AdminService.approve_user(db, user_id, admin)


@router.put("/users/{user_id}/admin", response_model=ProfileOut)
async def set_user_admin(
    user_id: int,
    data: AdminUserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    return await AdminService.set_admin(db, user_id, data.is_admin, admin)


# Groups and memberships

@router.get("/groups", response_model=List[GroupOut])
async def list_groups(db: AsyncSession = Depends(get_db), admin: User = Depends(require_admin)):
    return await GroupService.list_groups(db)


@router.post("/groups", response_model=GroupOut, status_code=201)
async def create_group(data: GroupCreate, db: AsyncSession = Depends(get_db), admin: User = Depends(require_admin)):
    return await GroupService.create_group(db, data)


@router.put("/groups/{group_id}", response_model=GroupOut)
async def update_group(
    group_id: int,
    data: GroupUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    return await GroupService.update_group(db, group_id, data)


@router.get("/groups/{group_id}/members", response_model=GroupMembersResponse)
async def list_group_members(group_id: int, db: AsyncSession = Depends(get_db), admin: User = Depends(require_admin)):
    await GroupService.get_group(db, group_id)
    return await group_member_service.get_group_members(db, group_id)


@router.post("/groups/{group_id}/members", response_model=GroupMemberOut, status_code=201)
async def add_group_member(
    group_id: int,
    data: GroupMemberCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    member = await group_member_service.add_member(db, group_id, data.user_id)
    members = await group_member_service.get_group_members(db, group_id)
    return next(m for m in members.members if m.id == member.id)


@router.delete("/groups/{group_id}/members/{user_id}")
async def remove_group_member(
    group_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin)
):
    await group_member_service.remove_member(db, group_id, user_id)
    return {"detail": "Member removed"}


# Destinations

@router.get("/pois", response_model=List[POIOut])
async def list_all_pois(
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    poi_service: POIService = Depends(get_poi_service)
):
    return await poi_service.list_all_pois(db)


@router.post("/pois", response_model=POIOut, status_code=201)
async def create_poi(
    data: POICreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    poi_service: POIService = Depends(get_poi_service)
):
    return await poi_service.create_poi(db, data)


@router.put("/pois/{poi_id}", response_model=POIOut)
async def update_poi(
    poi_id: int,
    data: POIUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    poi_service: POIService = Depends(get_poi_service)
):
    return await poi_service.update_poi(db, poi_id, data)
