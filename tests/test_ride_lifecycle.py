from datetime import timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy import Update, select, update, func
from sqlalchemy.exc import OperationalError

from carpool.models import RideRequest, RideStatus, PassengerType, RideDirection
from carpool.schemas.rides.ride_request import RideCreate
from carpool.services.groups.group_member_service import remove_member
from carpool.services.rides import ride_service

from conftest import make_child, make_group, make_poi, make_ride, today


def child_ride(town, **overrides):
    fields = dict(
        group_id=town["group"].id,
        passenger_type=PassengerType.child,
        passenger_id=town["emma"].id,
        direction=RideDirection.home_to_poi,
        poi_id=town["poi"].id,
        ride_date=today(),
    )
    fields.update(overrides)
    return RideCreate(**fields)


async def count_rides(db):
    return await db.scalar(select(func.count()).select_from(RideRequest))


def assert_ride_invariants(ride):
    assert (ride.accepter_id is not None) == (ride.status in (RideStatus.accepted, RideStatus.completed))
    if ride.accepter_id is not None:
        assert ride.accepter_id != ride.requester_id


async def test_child_ride_accepted_and_completed(db, town):
    ride = await ride_service.create_ride(db, child_ride(town), town["sarah"])
    assert ride.status == RideStatus.open
    assert ride.accepter_id is None
    assert ride.passenger_id == town["emma"].id
    assert_ride_invariants(ride)

    ride = await ride_service.accept_ride(db, ride.id, town["michael"])
    assert ride.status == RideStatus.accepted
    assert ride.accepter_id == town["michael"].id
    assert ride.accepted_at is not None
    assert_ride_invariants(ride)

    ride = await ride_service.complete_ride(db, ride.id, town["michael"])
    assert ride.status == RideStatus.completed
    assert ride.completed_at is not None
    assert_ride_invariants(ride)

    for attempt in (ride_service.accept_ride, ride_service.unaccept_ride):
        with pytest.raises(HTTPException) as exc:
            await attempt(db, ride.id, town["michael"])
        assert exc.value.status_code == 409

    with pytest.raises(HTTPException) as exc:
        await ride_service.cancel_ride(db, ride.id, town["sarah"])
    assert exc.value.status_code == 409


async def test_parent_ride_uses_requester_as_passenger(db, town):
    data = child_ride(town, passenger_type=PassengerType.parent, passenger_id=None)
    ride = await ride_service.create_ride(db, data, town["sarah"])
    assert ride.passenger_type == PassengerType.parent
    assert ride.passenger_id == town["sarah"].id


async def test_requester_may_complete_an_accepted_ride(db, town):
    ride = await ride_service.create_ride(db, child_ride(town), town["sarah"])
    await ride_service.accept_ride(db, ride.id, town["michael"])

    ride = await ride_service.complete_ride(db, ride.id, town["sarah"])
    assert ride.status == RideStatus.completed


async def test_bystander_cannot_complete(db, town):
    ride = await make_ride(db, town["group"], town["sarah"], town["poi"],
                           status=RideStatus.accepted, accepter=town["michael"])
    with pytest.raises(HTTPException) as exc:
        await ride_service.complete_ride(db, ride.id, town["jessica"])
    assert exc.value.status_code == 403


async def test_cannot_accept_own_request(db, town):
    ride = await ride_service.create_ride(db, child_ride(town), town["sarah"])

    with pytest.raises(HTTPException) as exc:
        await ride_service.accept_ride(db, ride.id, town["sarah"])
    assert exc.value.status_code == 403
    assert "own ride" in exc.value.detail

    ride = await ride_service.get_ride_for_member(db, ride.id, town["sarah"])
    assert ride.status == RideStatus.open
    assert ride.accepter_id is None


async def test_non_member_cannot_accept(db, town):
    ride = await make_ride(db, town["group"], town["sarah"], town["poi"])
    with pytest.raises(HTTPException) as exc:
        await ride_service.accept_ride(db, ride.id, town["outsider"])
    assert exc.value.status_code == 403


async def test_accept_then_unaccept_restores_the_open_ride(db, town):
    ride = await ride_service.create_ride(db, child_ride(town), town["sarah"])
    before = (ride.status, ride.accepter_id, ride.accepted_at)

    await ride_service.accept_ride(db, ride.id, town["michael"])
    ride = await ride_service.unaccept_ride(db, ride.id, town["michael"])

    assert (ride.status, ride.accepter_id, ride.accepted_at) == before
    assert_ride_invariants(ride)

    # and it can be picked up by someone else afterwards
    ride = await ride_service.accept_ride(db, ride.id, town["jessica"])
    assert ride.accepter_id == town["jessica"].id


async def test_only_the_accepter_can_unaccept(db, town):
    ride = await make_ride(db, town["group"], town["sarah"], town["poi"],
                           status=RideStatus.accepted, accepter=town["michael"])

    for someone in (town["sarah"], town["jessica"]):
        with pytest.raises(HTTPException) as exc:
            await ride_service.unaccept_ride(db, ride.id, someone)
        assert exc.value.status_code == 403

    ride = await ride_service.get_ride_for_member(db, ride.id, town["sarah"])
    assert ride.accepter_id == town["michael"].id


async def test_unaccept_open_ride_is_rejected(db, town):
    ride = await make_ride(db, town["group"], town["sarah"], town["poi"])
    with pytest.raises(HTTPException) as exc:
        await ride_service.unaccept_ride(db, ride.id, town["michael"])
    assert exc.value.status_code == 409


async def test_requester_cancels_open_ride(db, town):
    ride = await ride_service.create_ride(db, child_ride(town), town["sarah"])

    with pytest.raises(HTTPException) as exc:
        await ride_service.cancel_ride(db, ride.id, town["michael"])
    assert exc.value.status_code == 403

    ride = await ride_service.cancel_ride(db, ride.id, town["sarah"])
    assert ride.status == RideStatus.cancelled
    assert ride.cancelled_at is not None
    assert_ride_invariants(ride)

    with pytest.raises(HTTPException) as exc:
        await ride_service.accept_ride(db, ride.id, town["michael"])
    assert exc.value.status_code == 409


async def test_accepted_ride_must_be_unaccepted_before_cancel(db, town):
    ride = await ride_service.create_ride(db, child_ride(town), town["sarah"])
    await ride_service.accept_ride(db, ride.id, town["michael"])

    with pytest.raises(HTTPException) as exc:
        await ride_service.cancel_ride(db, ride.id, town["sarah"])
    assert exc.value.status_code == 409

    await ride_service.unaccept_ride(db, ride.id, town["michael"])
    ride = await ride_service.cancel_ride(db, ride.id, town["sarah"])
    assert ride.status == RideStatus.cancelled


async def test_missing_ride_is_not_found(db, town):
    with pytest.raises(HTTPException) as exc:
        await ride_service.accept_ride(db, 9999, town["michael"])
    assert exc.value.status_code == 404


@pytest.mark.parametrize("offset", [-1, 2, 7])
async def test_ride_date_must_be_today_or_tomorrow(db, town, offset):
    data = child_ride(town, ride_date=today() + timedelta(days=offset))

    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, data, town["sarah"])
    assert exc.value.status_code == 400
    assert exc.value.detail == "Ride date must be today or tomorrow"
    assert await count_rides(db) == 0


async def test_tomorrow_is_accepted(db, town):
    ride = await ride_service.create_ride(db, child_ride(town, ride_date=today() + timedelta(days=1)), town["sarah"])
    assert ride.ride_date == today() + timedelta(days=1)


async def test_duplicate_request_is_rejected(db, town):
    await ride_service.create_ride(db, child_ride(town), town["sarah"])

    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, child_ride(town), town["sarah"])
    assert exc.value.status_code == 400
    assert exc.value.detail == ride_service.DUPLICATE_RIDE_DETAIL
    assert await count_rides(db) == 1


async def test_duplicate_check_ignores_cancelled_but_not_completed(db, town):
    first = await ride_service.create_ride(db, child_ride(town), town["sarah"])
    await ride_service.cancel_ride(db, first.id, town["sarah"])

    second = await ride_service.create_ride(db, child_ride(town), town["sarah"])
    await ride_service.accept_ride(db, second.id, town["michael"])
    await ride_service.complete_ride(db, second.id, town["michael"])

    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, child_ride(town), town["sarah"])
    assert exc.value.status_code == 400


async def test_return_trip_is_not_a_duplicate(db, town):
    await ride_service.create_ride(db, child_ride(town), town["sarah"])
    ride = await ride_service.create_ride(db, child_ride(town, direction=RideDirection.poi_to_home), town["sarah"])
    assert ride.direction == RideDirection.poi_to_home


async def test_destination_is_required(db, town):
    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, child_ride(town, poi_id=None), town["sarah"])
    assert exc.value.status_code == 400
    assert exc.value.detail == "Please select a destination"


async def test_archived_destination_is_rejected(db, town):
    old_poi = await make_poi(db, name="Old Pool", archived=True)
    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, child_ride(town, poi_id=old_poi.id), town["sarah"])
    assert exc.value.status_code == 400


async def test_child_must_be_selected_and_owned(db, town):
    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, child_ride(town, passenger_id=None), town["sarah"])
    assert exc.value.detail == "Please select a child"

    olivia = await make_child(db, town["michael"], name="Olivia Chen")
    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, child_ride(town, passenger_id=olivia.id), town["sarah"])
    assert exc.value.status_code == 400
    assert await count_rides(db) == 0


async def test_requester_must_belong_to_an_active_group(db, town):
    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, child_ride(town, passenger_type=PassengerType.parent), town["outsider"])
    assert exc.value.status_code == 403

    archived = await make_group(db, name="Old Tennis", members=(town["sarah"],), archived=True)
    with pytest.raises(HTTPException) as exc:
        await ride_service.create_ride(db, child_ride(town, group_id=archived.id), town["sarah"])
    assert exc.value.status_code == 400


async def test_guarded_update_rejects_a_stale_read(db, town):
    ride = await make_ride(db, town["group"], town["sarah"], town["poi"])
    ride_id, jessica_id, michael_id = ride.id, town["jessica"].id, town["michael"].id

    # another member's accept lands between our read and our write
    await db.execute(
        update(RideRequest)
        .where(RideRequest.id == ride.id)
        .values(status=RideStatus.accepted, accepter_id=jessica_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    assert ride.status == RideStatus.open

    with pytest.raises(HTTPException) as exc:
        await ride_service._guarded_update(
            db, ride,
            [RideRequest.status == RideStatus.open],
            {"status": RideStatus.accepted, "accepter_id": michael_id},
            "accepted",
        )
    assert exc.value.status_code == 409

    # the failed write was rolled back and left the winning accept in place
    stored = await db.scalar(select(RideRequest.accepter_id).where(RideRequest.id == ride_id))
    assert stored == jessica_id


async def test_list_rides_filters_server_side(db, town):
    open_ride = await make_ride(db, town["group"], town["sarah"], town["poi"])
    taken = await make_ride(db, town["group"], town["jessica"], town["poi"],
                            status=RideStatus.accepted, accepter=town["michael"])
    other_group = await make_group(db, name="Monday Night Tennis", members=(town["outsider"],))
    await make_ride(db, other_group, town["outsider"], town["poi"])

    rides = await ride_service.list_rides(db, town["michael"])
    assert {r.id for r in rides} == {open_ride.id, taken.id}

    rides = await ride_service.list_rides(db, town["michael"], ride_status=RideStatus.open)
    assert [r.id for r in rides] == [open_ride.id]

    rides = await ride_service.list_rides(db, town["michael"], accepter_id=town["michael"].id)
    assert [r.id for r in rides] == [taken.id]

    rides = await ride_service.list_rides(db, town["michael"], requester_id=town["sarah"].id)
    assert [r.id for r in rides] == [open_ride.id]

    with pytest.raises(HTTPException) as exc:
        await ride_service.list_rides(db, town["michael"], group_id=other_group.id)
    assert exc.value.status_code == 403


async def test_driver_removed_from_group_can_still_let_go_of_the_ride(db, town):
    ride = await ride_service.create_ride(db, child_ride(town), town["sarah"])
    await ride_service.accept_ride(db, ride.id, town["michael"])
    await remove_member(db, town["group"].id, town["michael"].id)

    ride = await ride_service.unaccept_ride(db, ride.id, town["michael"])
    assert ride.status == RideStatus.open
    assert ride.accepter_id is None

    ride = await ride_service.cancel_ride(db, ride.id, town["sarah"])
    assert ride.status == RideStatus.cancelled


async def test_driver_removed_from_group_can_still_complete(db, town):
    ride = await make_ride(db, town["group"], town["sarah"], town["poi"],
                           status=RideStatus.accepted, accepter=town["michael"])
    await remove_member(db, town["group"].id, town["michael"].id)

    ride = await ride_service.complete_ride(db, ride.id, town["michael"])
    assert ride.status == RideStatus.completed


async def test_rides_in_an_archived_group_cannot_be_accepted(db, town):
    ride = await make_ride(db, town["group"], town["sarah"], town["poi"])
    ride_id = ride.id
    town["group"].archived = True
    await db.commit()

    with pytest.raises(HTTPException) as exc:
        await ride_service.accept_ride(db, ride_id, town["michael"])
    assert exc.value.status_code == 400

    stored = await db.scalar(select(RideRequest.status).where(RideRequest.id == ride_id))
    assert stored == RideStatus.open


async def test_store_failure_during_a_transition_is_a_503(db, town, monkeypatch):
    ride = await make_ride(db, town["group"], town["sarah"], town["poi"])
    ride_id = ride.id
    real_execute = db.execute

    async def execute(statement, *args, **kwargs):
        if isinstance(statement, Update):
            raise OperationalError(str(statement), {}, Exception("database is locked"))
        return await real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", execute)
    with pytest.raises(HTTPException) as exc:
        await ride_service.accept_ride(db, ride_id, town["michael"])
    assert exc.value.status_code == 503
    assert exc.value.detail == "Could not save changes"

    monkeypatch.undo()
    stored = await db.scalar(select(RideRequest.accepter_id).where(RideRequest.id == ride_id))
    assert stored is None
