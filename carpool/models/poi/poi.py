from sqlalchemy import Column, Integer, String, Boolean, DateTime
from datetime import datetime
from carpool.core.database import Base


class POI(Base):
    __tablename__ = "pois"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=False)
    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def to_dict(self):
        """Convert POI instance to dictionary for caching"""
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "archived": self.archived,
        }
