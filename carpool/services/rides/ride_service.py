from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status
from datetime import datetime, timedelta
from typing import List, Optional

from carpool.core.database import commit_or_rollback, execute_or_rollback
from carpool.core.logger import logger
from carpool.models.groups.group import Group
from carpool.models.poi.poi import POI
from carpool.models.rides.ride_request import RideRequest, RideStatus, PassengerType
from carpool.models.user.child import Child
from carpool.models.user.user import User
from carpool.schemas.rides.ride_request import RideCreate
from carpool.services.groups.group_member_service import require_member, get_user_group_ids

DUPLICATE_RIDE_DETAIL = "You already have a request for this passenger, destination and date"


def allowed_ride_dates(today=None):
    today = today or datetime.utcnow().date()
    return today, today + timedelta(days=1)


async def _get_ride(db: AsyncSession, ride_id: int) -> RideRequest:
    result = await db.execute(
        select(RideRequest)
        .where(RideRequest.id == ride_id)
        .execution_options(populate_existing=True)
    )
    ride = result.scalar_one_or_none()
    if not ride:
        raise HTTPException(status_code=404, detail="Ride request not found")
    return ride


async def get_ride_for_member(db: AsyncSession, ride_id: int, user: User) -> RideRequest:
    ride = await _get_ride(db, ride_id)
    await require_member(db, ride.group_id, user)
    return ride


async def find_duplicate_ride(db: AsyncSession, ride: RideRequest) -> Optional[RideRequest]:
    result = await db.execute(
        select(RideRequest).where(
            RideRequest.group_id == ride.group_id,
            RideRequest.requester_id == ride.requester_id,
            RideRequest.passenger_type == ride.passenger_type,
            RideRequest.passenger_id == ride.passenger_id,
            RideRequest.direction == ride.direction,
            RideRequest.poi_id == ride.poi_id,
            RideRequest.ride_date == ride.ride_date,
            RideRequest.status != RideStatus.cancelled,
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def create_ride(db: AsyncSession, data: RideCreate, requester: User) -> RideRequest:
    group = await db.get(Group, data.group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Group not found")
    if group.archived:
        raise HTTPException(status_code=400, detail="This group is archived")
    await require_member(db, group.id, requester)

    if data.poi_id is None:
        raise HTTPException(status_code=400, detail="Please select a destination")
    poi = await db.get(POI, data.poi_id)
    if not poi or poi.archived:
        raise HTTPException(status_code=400, detail="Please select a valid destination")

    if data.passenger_type == PassengerType.child:
        if data.passenger_id is None:
            raise HTTPException(status_code=400, detail="Please select a child")
        child = await db.get(Child, data.passenger_id)
        if not child or child.parent_id != requester.id:
            raise HTTPException(status_code=400, detail="Please select one of your children")
        passenger_id = child.id
    else:
        passenger_id = requester.id

    if data.ride_date not in allowed_ride_dates():
        logger.warning(f"User {requester.id} tried to request a ride for {data.ride_date}")
        raise HTTPException(status_code=400, detail="Ride date must be today or tomorrow")

    new_ride = RideRequest(
        group_id=group.id,
        requester_id=requester.id,
        passenger_type=data.passenger_type,
        passenger_id=passenger_id,
        direction=data.direction,
        poi_id=poi.id,
        ride_date=data.ride_date,
        status=RideStatus.open,
        accepter_id=None,
        created_at=datetime.utcnow(),
    )

    if await find_duplicate_ride(db, new_ride):
        logger.warning(f"Duplicate ride request from user {requester.id} in group {group.id}")
        raise HTTPException(status_code=400, detail=DUPLICATE_RIDE_DETAIL)

    db.add(new_ride)
    try:
        await commit_or_rollback(db, "create ride request")
    except IntegrityError:
        # lost a race against an identical request
        raise HTTPException(status_code=400, detail=DUPLICATE_RIDE_DETAIL)
    await db.refresh(new_ride)

    logger.info(f"Ride {new_ride.id} requested by user {requester.id} in group {group.id} for {new_ride.ride_date}")
    return new_ride


async def _guarded_update(db: AsyncSession, ride: RideRequest, guards: list, values: dict, action: str) -> RideRequest:
    """Apply a transition only if the row still matches the state it was checked in."""
    ride_id = ride.id
    result = await execute_or_rollback(
        db,
        update(RideRequest)
        .where(RideRequest.id == ride_id, *guards)
        .values(**values)
        .execution_options(synchronize_session=False),
        f"mark ride {ride_id} {action}",
    )
    if result.rowcount != 1:
        await db.rollback()
        logger.warning(f"Ride {ride_id} changed before it could be {action}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This ride was just updated by someone else, please refresh"
        )

    await commit_or_rollback(db, f"mark ride {ride_id} {action}")
    await db.refresh(ride)
    return ride


def _reject_state(ride: RideRequest, expected: RideStatus, action: str):
    if ride.status != expected:
        logger.warning(f"Rejected {action} on ride {ride.id} in state {ride.status.value}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot {action} a ride that is {ride.status.value}"
        )


async def accept_ride(db: AsyncSession, ride_id: int, actor: User) -> RideRequest:
    ride = await get_ride_for_member(db, ride_id, actor)
    _reject_state(ride, RideStatus.open, "accept")

    group = await db.get(Group, ride.group_id)
    if group.archived:
        raise HTTPException(status_code=400, detail="This group is archived")

    if ride.requester_id == actor.id:
        logger.warning(f"User {actor.id} tried to accept their own ride {ride.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can't accept your own ride request"
        )

    ride = await _guarded_update(
        db, ride,
        [RideRequest.status == RideStatus.open, RideRequest.accepter_id.is_(None)],
        {"status": RideStatus.accepted, "accepter_id": actor.id, "accepted_at": datetime.utcnow()},
        "accepted",
    )
    logger.info(f"Ride {ride.id} accepted by user {actor.id}")
    return ride


async def unaccept_ride(db: AsyncSession, ride_id: int, actor: User) -> RideRequest:
    # The driver may have left the group since accepting; being the accepter is enough
    ride = await _get_ride(db, ride_id)
    _reject_state(ride, RideStatus.accepted, "un-accept")

    if ride.accepter_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the member who accepted this ride can un-accept it"
        )

    ride = await _guarded_update(
        db, ride,
        [RideRequest.status == RideStatus.accepted, RideRequest.accepter_id == actor.id],
        {"status": RideStatus.open, "accepter_id": None, "accepted_at": None},
        "un-accepted",
    )
    logger.info(f"Ride {ride.id} un-accepted by user {actor.id}")
    return ride


async def complete_ride(db: AsyncSession, ride_id: int, actor: User) -> RideRequest:
    ride = await _get_ride(db, ride_id)
    _reject_state(ride, RideStatus.accepted, "complete")

    if actor.id not in (ride.requester_id, ride.accepter_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the requester or the driver can complete this ride"
        )

    ride = await _guarded_update(
        db, ride,
        [RideRequest.status == RideStatus.accepted, RideRequest.accepter_id == ride.accepter_id],
        {"status": RideStatus.completed, "completed_at": datetime.utcnow()},
        "completed",
    )
    logger.info(f"Ride {ride.id} completed by user {actor.id}")
    return ride


async def cancel_ride(db: AsyncSession, ride_id: int, actor: User) -> RideRequest:
    # Accepted rides have to be un-accepted by their driver before they can be cancelled
    ride = await get_ride_for_member(db, ride_id, actor)
    _reject_state(ride, RideStatus.open, "cancel")

    if ride.requester_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the requester can cancel this ride"
        )

    ride = await _guarded_update(
        db, ride,
        [RideRequest.status == RideStatus.open],
        {"status": RideStatus.cancelled, "cancelled_at": datetime.utcnow()},
        "cancelled",
    )
    logger.info(f"Ride {ride.id} cancelled by user {actor.id}")
    return ride


async def list_rides(
    db: AsyncSession,
    viewer: User,
    ride_status: Optional[RideStatus] = None,
    group_id: Optional[int] = None,
    requester_id: Optional[int] = None,
    accepter_id: Optional[int] = None,
) -> List[RideRequest]:
    """Server-side query over the rides of the viewer's groups."""
    if group_id is not None:
        await require_member(db, group_id, viewer)
        query = select(RideRequest).where(RideRequest.group_id == group_id)
    else:
        group_ids = await get_user_group_ids(db, viewer.id)
        if not group_ids:
            return []
        query = select(RideRequest).where(RideRequest.group_id.in_(group_ids))

    if ride_status is not None:
        query = query.where(RideRequest.status == ride_status)
    if requester_id is not None:
        query = query.where(RideRequest.requester_id == requester_id)
    if accepter_id is not None:
        query = query.where(RideRequest.accepter_id == accepter_id)

    query = query.order_by(RideRequest.ride_date.asc(), RideRequest.created_at.desc(), RideRequest.id.desc())
    result = await db.execute(query)
    return result.scalars().all()
