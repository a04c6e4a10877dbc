import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./carpool-unused.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("COOKIE_SECURE", "false")

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from fakeredis import aioredis as fake_aioredis
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from carpool.core.cache import RedisCache
from carpool.core.database import Base, get_db
from carpool.core.redis_lifecycle import get_cache, get_redis_client
from carpool.core.security import create_access_token, hash_password
from carpool.main import app
from carpool.models import User, Child, Group, GroupMember, POI, RideRequest, RideStatus, PassengerType, RideDirection


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'carpool.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def redis_client():
    client = fake_aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()


@pytest_asyncio.fixture
async def client(session_factory, redis_client):
    async def _get_db():
        async with session_factory() as session:
            yield session

    async def _get_redis():
        yield redis_client

    async def _get_cache():
        yield RedisCache(redis_client)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis_client] = _get_redis
    app.dependency_overrides[get_cache] = _get_cache
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


def today():
    return datetime.utcnow().date()


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


_password_hashes = {}


def _hashed(password):
    # bcrypt is slow on purpose, hash each test password once
    if password not in _password_hashes:
        _password_hashes[password] = hash_password(password)
    return _password_hashes[password]


async def make_user(db, name, approved=True, admin=False, password="pass123"):
    user = User(
        email=f"{name.lower().replace(' ', '.')}@email.com",
        hashed_password=_hashed(password),
        auth_type="local",
        name=name,
        phone=f"201-555-{1000 + len(name):04d}",
        home_address=f"{len(name)} Oak Ave, Haworth, NJ",
        is_approved=approved,
        is_admin=admin,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def make_group(db, name="Israeli Scouts", members=(), archived=False):
    group = Group(name=name, archived=archived)
    db.add(group)
    await db.flush()
    for user in members:
        db.add(GroupMember(group_id=group.id, user_id=user.id))
    await db.commit()
    await db.refresh(group)
    return group


async def make_poi(db, name="Israeli Scouts Meeting Hall", address="100 Scout Way, Haworth, NJ", archived=False):
    poi = POI(name=name, address=address, archived=archived)
    db.add(poi)
    await db.commit()
    await db.refresh(poi)
    return poi


async def make_child(db, parent, name="Emma Cohen", phone="201-555-0201"):
    child = Child(parent_id=parent.id, name=name, phone=phone)
    db.add(child)
    await db.commit()
    await db.refresh(child)
    return child


async def make_ride(db, group, requester, poi, ride_date=None, status=RideStatus.open, accepter=None,
                    passenger_type=PassengerType.parent, passenger_id=None,
                    direction=RideDirection.home_to_poi, created_at=None):
    """Insert a ride directly, bypassing the creation rules (for past dates and fixed states)."""
    ride = RideRequest(
        group_id=group.id,
        requester_id=requester.id,
        passenger_type=passenger_type,
        passenger_id=passenger_id if passenger_id is not None else requester.id,
        direction=direction,
        poi_id=poi.id,
        ride_date=ride_date or today(),
        status=status,
        accepter_id=accepter.id if accepter else None,
        accepted_at=datetime.utcnow() if accepter else None,
        completed_at=datetime.utcnow() if status == RideStatus.completed else None,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(ride)
    await db.commit()
    await db.refresh(ride)
    return ride


@pytest_asyncio.fixture
async def town(db):
    """Sarah and Michael share the scouts group, Jessica is in it too; Admin runs things."""
    admin = await make_user(db, "Admin User", admin=True)
    sarah = await make_user(db, "Sarah Cohen")
    michael = await make_user(db, "Michael Chen")
    jessica = await make_user(db, "Jessica Williams")
    outsider = await make_user(db, "Olivia Outsider")
    group = await make_group(db, members=(sarah, michael, jessica))
    poi = await make_poi(db)
    emma = await make_child(db, sarah)
    return {
        "admin": admin,
        "sarah": sarah,
        "michael": michael,
        "jessica": jessica,
        "outsider": outsider,
        "group": group,
        "poi": poi,
        "emma": emma,
    }


@pytest.fixture
def yesterday():
    return today() - timedelta(days=1)
