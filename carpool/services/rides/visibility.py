"""Rendering ride requests for a particular viewer.

Contact details (phone numbers, home addresses, the child passenger's phone)
are only exposed to the requester and the accepter of a ride that has left the
``open`` state. The decision is recomputed from the ride's current status on
every read and is never stored or cached.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from typing import Dict, Iterable, List, Optional

from carpool.models.poi.poi import POI
from carpool.models.rides.ride_request import RideRequest, RideStatus, PassengerType
from carpool.models.user.child import Child
from carpool.models.user.user import User
from carpool.schemas.rides.ride_request import RideOut, RideParty, RidePassenger, RidePOI


def can_see_contact(ride: RideRequest, viewer_id: int) -> bool:
    if ride.status == RideStatus.open:
        return False
    return viewer_id in (ride.requester_id, ride.accepter_id)


def allowed_actions(ride: RideRequest, viewer_id: int) -> List[str]:
    """Transitions the viewer may attempt, assuming they are a group member."""
    is_requester = viewer_id == ride.requester_id
    is_accepter = ride.accepter_id is not None and viewer_id == ride.accepter_id

    if ride.status == RideStatus.open:
        return ["cancel"] if is_requester else ["accept"]
    if ride.status == RideStatus.accepted:
        actions = []
        if is_accepter:
            actions.append("unaccept")
        if is_requester or is_accepter:
            actions.append("complete")
        return actions
    return []


def _party(user: Optional[User], show_contact: bool) -> Optional[RideParty]:
    if user is None:
        return None
    return RideParty(
        id=user.id,
        name=user.name,
        phone=user.phone if show_contact else None,
        home_address=user.home_address if show_contact else None,
    )


def render_ride(
    ride: RideRequest,
    viewer_id: int,
    users: Dict[int, User],
    children: Dict[int, Child],
    pois: Dict[int, POI],
) -> RideOut:
    show_contact = can_see_contact(ride, viewer_id)
    requester = users.get(ride.requester_id)

    passenger = None
    if ride.passenger_type == PassengerType.parent:
        if requester is not None:
            passenger = RidePassenger(type=PassengerType.parent, id=requester.id, name=requester.name)
    else:
        child = children.get(ride.passenger_id)
        if child is not None:
            passenger = RidePassenger(
                type=PassengerType.child,
                id=child.id,
                name=child.name,
                phone=child.phone if show_contact else None,
            )

    poi = pois.get(ride.poi_id)

    return RideOut(
        id=ride.id,
        group_id=ride.group_id,
        requester_id=ride.requester_id,
        passenger_type=ride.passenger_type,
        passenger_id=ride.passenger_id,
        direction=ride.direction,
        poi_id=ride.poi_id,
        ride_date=ride.ride_date,
        status=ride.status,
        accepter_id=ride.accepter_id,
        created_at=ride.created_at,
        accepted_at=ride.accepted_at,
        completed_at=ride.completed_at,
        cancelled_at=ride.cancelled_at,
        requester=_party(requester, show_contact),
        accepter=_party(users.get(ride.accepter_id) if ride.accepter_id else None, show_contact),
        passenger=passenger,
        poi=RidePOI.model_validate(poi) if poi is not None else None,
        can_see_contact=show_contact,
        actions=allowed_actions(ride, viewer_id),
    )


async def render_rides(db: AsyncSession, rides: Iterable[RideRequest], viewer_id: int) -> List[RideOut]:
    """Batch-load the people and places a list of rides refers to, then render each one."""
    rides = list(rides)
    if not rides:
        return []

    user_ids = {r.requester_id for r in rides} | {r.accepter_id for r in rides if r.accepter_id}
    child_ids = {r.passenger_id for r in rides if r.passenger_type == PassengerType.child}
    poi_ids = {r.poi_id for r in rides}

    users = {u.id: u for u in (await db.execute(select(User).where(User.id.in_(user_ids)))).scalars()}
    children = {}
    if child_ids:
        children = {c.id: c for c in (await db.execute(select(Child).where(Child.id.in_(child_ids)))).scalars()}
    pois = {p.id: p for p in (await db.execute(select(POI).where(POI.id.in_(poi_ids)))).scalars()}

    return [render_ride(ride, viewer_id, users, children, pois) for ride in rides]


async def render_one(db: AsyncSession, ride: RideRequest, viewer_id: int) -> RideOut:
    rendered = await render_rides(db, [ride], viewer_id)
    return rendered[0]
