from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from fastapi import HTTPException
from typing import List

from carpool.core.cache import RedisCache
from carpool.core.config import settings
from carpool.core.database import commit_or_rollback
from carpool.core.logger import logger
from carpool.models.poi.poi import POI
from carpool.schemas.poi.poi import POICreate, POIUpdate


class POIService:
    """Destinations are admin-managed reference data, so the active list is cached."""

    def __init__(self, cache: RedisCache):
        self.cache = cache

    async def _invalidate_poi_caches(self):
        removed = await self.cache.invalidate("pois")
        logger.info(f"Dropped {removed} cached POI lists")

    async def list_active_pois(self, db: AsyncSession) -> List[dict]:
        cache_key = self.cache.build_key("pois", "active")
        cached_pois = await self.cache.get(cache_key)

        if cached_pois is not None:
            logger.info(f"Retrieved {len(cached_pois)} POIs from cache")
            return cached_pois

        result = await db.execute(
            select(POI).where(POI.archived == False).order_by(POI.name)  # noqa: E712
        )
        pois = [poi.to_dict() for poi in result.scalars().all()]

        await self.cache.set(cache_key, pois, expire=settings.POI_CACHE_TTL_SECONDS)
        logger.info(f"Retrieved {len(pois)} POIs from database")
        return pois

    async def list_all_pois(self, db: AsyncSession) -> List[POI]:
        result = await db.execute(select(POI).order_by(POI.name))
        return result.scalars().all()

    async def get_poi(self, db: AsyncSession, poi_id: int) -> POI:
        poi = await db.get(POI, poi_id)
        if not poi:
            raise HTTPException(status_code=404, detail="POI not found")
        return poi

    async def create_poi(self, db: AsyncSession, data: POICreate) -> POI:
        name, address = data.name.strip(), data.address.strip()
        if not name or not address:
            raise HTTPException(status_code=400, detail="POI name and address are required")

        poi = POI(name=name, address=address)
        db.add(poi)
        await commit_or_rollback(db, "create POI")
        await db.refresh(poi)

        await self._invalidate_poi_caches()
        logger.info(f"POI {poi.id} '{name}' created")
        return poi

    async def update_poi(self, db: AsyncSession, poi_id: int, data: POIUpdate) -> POI:
        poi = await self.get_poi(db, poi_id)

        update_fields = data.model_dump(exclude_unset=True)
        if not update_fields:
            raise HTTPException(status_code=400, detail="No fields to update.")
        for field in ("name", "address"):
            if field in update_fields:
                update_fields[field] = (update_fields[field] or "").strip()
                if not update_fields[field]:
                    raise HTTPException(status_code=400, detail=f"POI {field} is required")

        for key, value in update_fields.items():
            setattr(poi, key, value)

        await commit_or_rollback(db, "update POI")
        await db.refresh(poi)

        await self._invalidate_poi_caches()
        logger.info(f"POI {poi_id} updated: {sorted(update_fields)}")
        return poi
