"""Password hashing and the access/refresh token pair handed out at login.

A refresh token is only honoured while its ``jti`` is registered in redis.
Each user keeps at most MAX_CONCURRENT_REFRESHES sessions; the oldest is
dropped when a new one is opened.
"""
from passlib.context import CryptContext
from jose import jwt, JWTError
from datetime import datetime, timedelta
from carpool.core.config import settings
import uuid

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def _encode(user_id, token_type: str, lifetime: timedelta, jti: str = None) -> str:
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "jti": jti or str(uuid.uuid4()),
        "exp": datetime.utcnow() + lifetime,
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

def create_access_token(user_id, expires_delta: timedelta = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode(user_id, ACCESS, lifetime)

def decode_token(token: str, expected_type: str) -> dict:
    """Verify signature, expiry and token type. Raises JWTError otherwise."""
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if payload.get("type") != expected_type or not payload.get("sub") or not payload.get("jti"):
        raise JWTError(f"Not a usable {expected_type} token")
    return payload


# Refresh sessions in redis

def _session_key(user_id, jti) -> str:
    return f"carpool:refresh:{user_id}:{jti}"

def _session_index(user_id) -> str:
    return f"carpool:refresh-sessions:{user_id}"


async def issue_refresh_token(user_id, redis_client) -> str:
    jti = str(uuid.uuid4())
    lifetime = timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
    ttl = int(lifetime.total_seconds())
    opened_at = datetime.utcnow().timestamp()

    async with redis_client.pipeline(transaction=True) as pipe:
        pipe.set(_session_key(user_id, jti), int(opened_at), ex=ttl)
        pipe.zadd(_session_index(user_id), {jti: opened_at})
        pipe.expire(_session_index(user_id), ttl)
        await pipe.execute()

    await _drop_oldest_sessions(redis_client, user_id)
    return _encode(user_id, REFRESH, lifetime, jti=jti)

async def _drop_oldest_sessions(redis_client, user_id):
    index = _session_index(user_id)
    excess = await redis_client.zcard(index) - settings.MAX_CONCURRENT_REFRESHES
    if excess <= 0:
        return

    oldest = await redis_client.zrange(index, 0, excess - 1)
    await redis_client.delete(*[_session_key(user_id, jti) for jti in oldest])
    await redis_client.zrem(index, *oldest)

async def revoke_refresh_token(redis_client, user_id, jti: str):
    await redis_client.delete(_session_key(user_id, jti))
    await redis_client.zrem(_session_index(user_id), jti)

async def revoke_all_refresh_tokens(redis_client, user_id):
    index = _session_index(user_id)
    jtis = await redis_client.zrange(index, 0, -1)
    if jtis:
        await redis_client.delete(*[_session_key(user_id, jti) for jti in jtis])
    await redis_client.delete(index)

async def is_refresh_token_valid(redis_client, user_id, jti: str) -> bool:
    return bool(await redis_client.exists(_session_key(user_id, jti)))
