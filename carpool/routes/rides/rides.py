from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from carpool.core.database import get_db
from carpool.dependencies.auth import get_approved_user
from carpool.models.rides.ride_request import RideStatus
from carpool.models.user.user import User
from carpool.schemas.rides.ride_request import RideCreate, RideOut
from carpool.services.rides import ride_service
from carpool.services.rides.visibility import render_one, render_rides

router = APIRouter(prefix="/rides", tags=["Rides"])


@router.post("", response_model=RideOut, status_code=201)
async def create_ride_route(
    data: RideCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    ride = await ride_service.create_ride(db, data, current_user)
    return await render_one(db, ride, current_user.id)


@router.get("", response_model=List[RideOut])
async def query_rides(
    status: Optional[RideStatus] = None,
    group_id: Optional[int] = None,
    requester_id: Optional[int] = None,
    accepter_id: Optional[int] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    rides = await ride_service.list_rides(
        db, current_user,
        ride_status=status,
        group_id=group_id,
        requester_id=requester_id,
        accepter_id=accepter_id,
    )
    return await render_rides(db, rides, current_user.id)


@router.get("/{ride_id}", response_model=RideOut)
async def get_ride_route(
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    ride = await ride_service.get_ride_for_member(db, ride_id, current_user)
    return await render_one(db, ride, current_user.id)


@router.post("/{ride_id}/accept", response_model=RideOut)
async def accept_ride_route(
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    ride = await ride_service.accept_ride(db, ride_id, current_user)
    return await render_one(db, ride, current_user.id)


@router.post("/{ride_id}/unaccept", response_model=RideOut)
async def unaccept_ride_route(
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    ride = await ride_service.unaccept_ride(db, ride_id, current_user)
    return await render_one(db, ride, current_user.id)


@router.post("/{ride_id}/complete", response_model=RideOut)
async def complete_ride_route(
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    ride = await ride_service.complete_ride(db, ride_id, current_user)
    return await render_one(db, ride, current_user.id)


@router.post("/{ride_id}/cancel", response_model=RideOut)
async def cancel_ride_route(
    ride_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_approved_user)
):
    ride = await ride_service.cancel_ride(db, ride_id, current_user)
    return await render_one(db, ride, current_user.id)
