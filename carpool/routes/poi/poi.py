from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from carpool.core.database import get_db
from carpool.core.redis_lifecycle import get_cache
from carpool.dependencies.auth import get_approved_user
from carpool.schemas.poi.poi import POIOut
from carpool.services.poi.poi_service import POIService

router = APIRouter(prefix="/pois", tags=["Destinations"])

async def get_poi_service(
    cache=Depends(get_cache)
) -> POIService:
    return POIService(cache)


@router.get("", response_model=List[POIOut])
async def list_pois(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_approved_user),
    poi_service: POIService = Depends(get_poi_service)
):
    return await poi_service.list_active_pois(db)
