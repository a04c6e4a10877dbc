from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

import carpool.models  # noqa: F401
from carpool.core.config import settings
from carpool.core.logger import logger
from carpool.core.init_db import init_db
from carpool.core.redis_lifecycle import init_redis_client, close_redis
from carpool.routes import api_router

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.PROJECT_VERSION,
    description=settings.PROJECT_DESCRIPTION,
    openapi_url="/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_BASE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# required for Authlib OAuth
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.JWT_SECRET_KEY,
    same_site="lax",
    https_only=settings.COOKIE_SECURE
)


app.include_router(api_router)

@app.get("/")
async def root():
    return {"message": "Welcome to the Haworth Carpool API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

@app.on_event("startup")
async def startup_event():
    await init_db()
    await init_redis_client()
    logger.info(f"{settings.PROJECT_NAME} {settings.PROJECT_VERSION} started")

@app.on_event("shutdown")
async def shutdown_event():
    await close_redis()
