from sqlalchemy import Column, String, Boolean, Integer, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from carpool.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True)
    auth_type = Column(String, default="local")  # local, google
    external_auth_id = Column(String, unique=True, nullable=True)

    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    home_address = Column(String, nullable=True)

    is_approved = Column(Boolean, nullable=False, default=False)
    is_admin = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    children = relationship("Child", back_populates="parent", cascade="all, delete")
    memberships = relationship("GroupMember", back_populates="user", cascade="all, delete")
