from pydantic import BaseModel
from typing import List, Literal, Optional
from datetime import date, datetime
from carpool.models.rides.ride_request import PassengerType, RideDirection, RideStatus


class RideCreate(BaseModel):
    group_id: int
    passenger_type: PassengerType = PassengerType.parent
    # Required for child rides; ignored for parent rides
    passenger_id: Optional[int] = None
    direction: RideDirection = RideDirection.home_to_poi
    poi_id: Optional[int] = None
    ride_date: date


class RideParty(BaseModel):
    """A requester or accepter as seen by the viewer; contact fields may be blanked."""
    id: int
    name: str
    phone: Optional[str] = None
    home_address: Optional[str] = None

class RidePassenger(BaseModel):
    type: PassengerType
    id: int
    name: str
    phone: Optional[str] = None

class RidePOI(BaseModel):
    id: int
    name: str
    address: str

    model_config = {"from_attributes": True}


RideAction = Literal["accept", "unaccept", "complete", "cancel"]

class RideOut(BaseModel):
    id: int
    group_id: int
    requester_id: int
    passenger_type: PassengerType
    passenger_id: int
    direction: RideDirection
    poi_id: int
    ride_date: date
    status: RideStatus
    accepter_id: Optional[int] = None
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    requester: Optional[RideParty] = None
    accepter: Optional[RideParty] = None
    passenger: Optional[RidePassenger] = None
    poi: Optional[RidePOI] = None

    can_see_contact: bool = False
    actions: List[RideAction] = []


FeedFilter = Literal["open", "mine", "accepted", "all"]

class RideFeedResponse(BaseModel):
    group_id: int
    filter: FeedFilter
    rides: List[RideOut]
    # Only filled for the "mine" filter
    past: List[RideOut] = []
