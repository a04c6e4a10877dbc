from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from carpool.core.database import get_db
from carpool.dependencies.auth import get_approved_user
from carpool.models.user.user import User
from carpool.schemas.groups.group import GroupOut, GroupMembersResponse
from carpool.schemas.rides.ride_request import RideFeedResponse, FeedFilter
from carpool.services.groups.group_member_service import get_user_groups, get_group_members, require_member
from carpool.services.rides.feed_service import get_feed

router = APIRouter(prefix="/groups", tags=["Groups"])


@router.get("", response_model=List[GroupOut])
async def list_my_groups(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    return await get_user_groups(db, current_user)


@router.get("/{group_id}/members", response_model=GroupMembersResponse)
async def list_group_members(
    group_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    await require_member(db, group_id, current_user)
    return await get_group_members(db, group_id)


@router.get("/{group_id}/feed", response_model=RideFeedResponse)
async def group_feed(
    group_id: int,
    filter: FeedFilter = Query("open"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    return await get_feed(db, group_id, current_user, filter)
