from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status
from jose import JWTError
from typing import Optional

from carpool.core.config import settings
from carpool.core.database import commit_or_rollback
from carpool.core.logger import logger
from carpool.core.security import (
    REFRESH, hash_password, verify_password, create_access_token, decode_token,
    issue_refresh_token, is_refresh_token_valid, revoke_refresh_token, revoke_all_refresh_tokens
)
from carpool.models.user.user import User
from carpool.schemas.user.user import UserCreate
from carpool.utils.Oauth.googleauth import oauth, consume_nonce

PENDING_APPROVAL_DETAIL = "Your account is pending approval"


async def register_user(user_data: UserCreate, db: AsyncSession) -> User:
    fields = {
        "name": user_data.name.strip(),
        "phone": user_data.phone.strip(),
        "home_address": user_data.home_address.strip(),
    }
    if not user_data.password or not all(fields.values()):
        raise HTTPException(status_code=400, detail="All fields are required")
    if len(user_data.password) < settings.PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
        )

    email = user_data.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar():
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        email=email,
        hashed_password=hash_password(user_data.password),
        auth_type="local",
        is_approved=False,
        is_admin=False,
        **fields
    )

    db.add(new_user)
    try:
        await commit_or_rollback(db, "register user")
    except IntegrityError:
        # Fallback in case of race condition with the query above
        raise HTTPException(status_code=400, detail="Email already registered")
    await db.refresh(new_user)

    logger.info(f"User {new_user.id} registered, awaiting approval")
    return new_user


async def _issue_tokens(user: User, redis_client) -> dict:
    return {
        "access_token": create_access_token(user.id),
        "refresh_token": await issue_refresh_token(user.id, redis_client),
        "token_type": "bearer",
        "is_admin": user.is_admin,
    }


async def login_user(email: str, password: str, db: AsyncSession, redis_client) -> dict:
    result = await db.execute(select(User).where(User.email == email.lower()))
    user = result.scalar()

    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if user.auth_type != "local":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User registered with different auth method"
        )

    if not user.hashed_password or not verify_password(password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_approved:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=PENDING_APPROVAL_DETAIL)

    logger.info(f"User {user.id} logged in")
    return await _issue_tokens(user, redis_client)


async def refresh_access_token(token: str, redis_client) -> dict:
    try:
        payload = decode_token(token, REFRESH)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token"
        )

    user_id, jti = payload["sub"], payload["jti"]
    if not await is_refresh_token_valid(redis_client, user_id, jti):
        logger.warning(f"Revoked refresh token presented for user {user_id}")
        raise HTTPException(status_code=401, detail="Refresh token revoked")

    # The refresh token itself is not rotated
    return {
        "access_token": create_access_token(user_id),
        "refresh_token": token,
        "token_type": "bearer"
    }


async def logout_user(token: Optional[str], redis_client, all_sessions: bool = False) -> dict:
    """Forget the session behind ``token``. Unusable tokens are a no-op."""
    if not token:
        return {"ok": True}

    try:
        payload = decode_token(token, REFRESH)
    except JWTError:
        return {"ok": True}

    user_id = payload["sub"]
    if all_sessions:
        await revoke_all_refresh_tokens(redis_client, user_id)
    else:
        await revoke_refresh_token(redis_client, user_id, payload["jti"])

    logger.info(f"User {user_id} logged out (all_sessions={all_sessions})")
    return {"ok": True, "message": "Logout successful"}


async def get_or_create_google_user(claims: dict, db: AsyncSession) -> User:
    """Match a Google identity to a user, creating an unapproved one on first sign-in."""
    email = claims.get("email")
    if not email:
        raise HTTPException(status_code=400, detail="Email not found in Google user info")
    email = email.lower()
    subject = claims.get("sub")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user:
        user = User(
            email=email,
            name=claims.get("name") or email.split("@")[0],
            hashed_password=None,
            auth_type="google",
            external_auth_id=subject,
            is_approved=False,
            is_admin=False,
        )
        db.add(user)
        await commit_or_rollback(db, "register google user")
        await db.refresh(user)
        logger.info(f"User {user.id} registered through Google, awaiting approval")
    elif user.auth_type != "google":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User registered with different auth method"
        )

    return user


async def handle_google_callback(request, db: AsyncSession, redis_client) -> dict:
    token = await oauth.google.authorize_access_token(request)
    if not token:
        raise HTTPException(status_code=400, detail="Failed to retrieve access token from Google")

    nonce = request.session.get("nonce")
    claims = token.get("userinfo") or await oauth.google.parse_id_token(token, nonce=nonce)
    received_nonce = claims.get("nonce")
    if not received_nonce:
        raise HTTPException(status_code=400, detail="Nonce missing from token")

    if not await consume_nonce(redis_client, received_nonce):
        raise HTTPException(status_code=400, detail="Invalid or expired nonce")

    user = await get_or_create_google_user(claims, db)
    if not user.is_approved:
        return {"approved": False}

    tokens = await _issue_tokens(user, redis_client)
    return {"approved": True, **tokens}
