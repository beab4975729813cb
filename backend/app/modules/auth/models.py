from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String

from app.db import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"schema": "auth"}

    Id = Column(Integer, primary_key=True, index=True)
    Email = Column(String(254), nullable=False, unique=True, index=True)
    DisplayName = Column(String(120))
    PasswordHash = Column(String(255), nullable=False)
    FailedLoginCount = Column(Integer, default=0, nullable=False)
    LockedUntil = Column(DateTime(timezone=True))
    ApiKeyHash = Column(String(64), index=True)
    ApiKeyCreatedAt = Column(DateTime(timezone=True))
    ApiKeyLastUsed = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
