from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from datetime import datetime, date, time, timedelta

from carpool.core.config import settings
from carpool.core.logger import logger
from carpool.models.rides.ride_request import RideRequest, RideStatus
from carpool.models.user.user import User
from carpool.schemas.rides.ride_request import RideFeedResponse
from carpool.services.groups.group_member_service import require_member
from carpool.services.rides.visibility import render_rides


def stale_cutoff_date(now: datetime = None) -> date:
    """Earliest ride_date that is not yet stale.

    A ride is stale once midnight of its date lies more than
    RIDE_STALE_AFTER_HOURS before ``now``.
    """
    now = now or datetime.utcnow()
    threshold = now - timedelta(hours=settings.RIDE_STALE_AFTER_HOURS)
    cutoff = threshold.date()
    if datetime.combine(cutoff, time.min) < threshold:
        cutoff += timedelta(days=1)
    return cutoff


def is_stale(ride_date: date, now: datetime = None) -> bool:
    return ride_date < stale_cutoff_date(now)


_SOONEST_FIRST = (RideRequest.ride_date.asc(), RideRequest.created_at.desc(), RideRequest.id.desc())
_MOST_RECENT_FIRST = (RideRequest.ride_date.desc(), RideRequest.created_at.desc(), RideRequest.id.desc())


async def get_feed(
    db: AsyncSession,
    group_id: int,
    viewer: User,
    feed_filter: str = "open",
    now: datetime = None,
) -> RideFeedResponse:
    await require_member(db, group_id, viewer)

    cutoff = stale_cutoff_date(now)
    base = select(RideRequest).where(RideRequest.group_id == group_id)
    past = []

    if feed_filter == "open":
        query = base.where(
            RideRequest.status == RideStatus.open,
            RideRequest.ride_date >= cutoff,
        ).order_by(*_SOONEST_FIRST)
    elif feed_filter == "mine":
        mine = base.where(RideRequest.requester_id == viewer.id)
        query = mine.where(RideRequest.ride_date >= cutoff).order_by(*_SOONEST_FIRST)
        past_result = await db.execute(
            mine.where(RideRequest.ride_date < cutoff).order_by(*_MOST_RECENT_FIRST)
        )
        past = past_result.scalars().all()
    elif feed_filter == "accepted":
        query = base.where(
            RideRequest.accepter_id == viewer.id,
            RideRequest.status.in_([RideStatus.accepted, RideStatus.completed]),
            RideRequest.ride_date >= cutoff,
        ).order_by(*_SOONEST_FIRST)
    else:
        query = base.where(RideRequest.ride_date >= cutoff).order_by(*_SOONEST_FIRST)

    result = await db.execute(query)
    rides = result.scalars().all()

    logger.info(
        f"Feed '{feed_filter}' for user {viewer.id} in group {group_id}: "
        f"{len(rides)} current, {len(past)} past"
    )
    return RideFeedResponse(
        group_id=group_id,
        filter=feed_filter,
        rides=await render_rides(db, rides, viewer.id),
        past=await render_rides(db, past, viewer.id),
    )
