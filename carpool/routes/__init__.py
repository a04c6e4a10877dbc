# carpool/routes/__init__.py
from fastapi import APIRouter
from carpool.routes.auth import auth, profile
from carpool.routes.groups import groups
from carpool.routes.poi import poi
from carpool.routes.rides import rides
from carpool.routes.admin import admin


api_router = APIRouter()

# Auth routes
api_router.include_router(auth.router)
api_router.include_router(profile.router)

# Member routes
api_router.include_router(groups.router)
api_router.include_router(poi.router)
api_router.include_router(rides.router)

# Admin routes
api_router.include_router(admin.router)
