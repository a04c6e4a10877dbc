from .user.user import User
from .user.child import Child
from .groups.group import Group
from .groups.group_member import GroupMember
from .poi.poi import POI
from .rides.ride_request import RideRequest, RideStatus, PassengerType, RideDirection
