from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from carpool.core.config import settings
from carpool.core.database import get_db
from carpool.core.redis_lifecycle import get_redis_client
from carpool.schemas.user.user import UserCreate, UserLogin, UserOut, TokenResponse, RefreshRequest
from carpool.services.auth import auth as auth_service
from carpool.utils.Oauth.googleauth import oauth, google_enabled, issue_nonce

router = APIRouter(prefix="/auth", tags=["Auth"])

@router.post("/register", response_model=UserOut, status_code=201)
async def register(
    user: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    new_user = await auth_service.register_user(user, db)
    return JSONResponse(
        status_code=201,
        content={
            **UserOut.model_validate(new_user).model_dump(),
            "message": "Account created! Please wait for admin approval."
        }
    )

@router.post("/login", response_model=TokenResponse)
async def login_route(
    user_data: UserLogin,
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis_client)
):
    return await auth_service.login_user(
        user_data.email,
        user_data.password,
        db,
        redis_client
    )


@router.post("/refresh")
async def refresh_token_route(
    body: RefreshRequest,
    redis_client=Depends(get_redis_client)
):
    return await auth_service.refresh_access_token(body.refresh_token, redis_client)

@router.post("/logout")
async def logout(
    body: Optional[RefreshRequest] = None,
    all_sessions: bool = False,
    redis_client=Depends(get_redis_client)
):
    token = body.refresh_token if body else None
    return await auth_service.logout_user(token, redis_client, all_sessions)


@router.get("/google/login")
async def google_login(request: Request, redis_client=Depends(get_redis_client)):
    if not google_enabled():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Google sign-in is not configured")
    nonce = await issue_nonce(redis_client)
    request.session["nonce"] = nonce
    redirect_uri = request.url_for("google_callback")
    return await oauth.google.authorize_redirect(request, redirect_uri, nonce=nonce)

@router.get("/google/callback")
async def google_callback(
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis_client=Depends(get_redis_client)
):
    result = await auth_service.handle_google_callback(request, db, redis_client)

    if not result["approved"]:
        return RedirectResponse(f"{settings.FRONTEND_BASE_URL}/login?pending=true")

    return RedirectResponse(
        f"{settings.FRONTEND_BASE_URL}/login?"
        f"access_token={result['access_token']}&"
        f"refresh_token={result['refresh_token']}"
    )
