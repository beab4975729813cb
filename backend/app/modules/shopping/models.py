from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Index, Integer, String, UniqueConstraint

from app.db import Base


class Store(Base):
    __tablename__ = "stores"
    __table_args__ = {"schema": "shopping"}

    Id = Column(String(36), primary_key=True)
    Name = Column(String(100), nullable=False)
    OwnerUserId = Column(Integer, ForeignKey("auth.users.Id"), nullable=False, index=True)
    # Ordered [{"id", "name", "order"}], order always equals list position.
    Sections = Column(JSON, nullable=False, default=list)
    Latitude = Column(Float)
    Longitude = Column(Float)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class StoreShare(Base):
    __tablename__ = "store_shares"
    __table_args__ = (
        UniqueConstraint("StoreId", "UserId", name="uq_store_shares_store_user"),
        {"schema": "shopping"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    StoreId = Column(String(36), ForeignKey("shopping.stores.Id"), nullable=False, index=True)
    UserId = Column(Integer, ForeignKey("auth.users.Id"), nullable=False, index=True)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class StorePendingShare(Base):
    __tablename__ = "store_pending_shares"
    __table_args__ = (
        UniqueConstraint("StoreId", "Email", name="uq_store_pending_shares_store_email"),
        {"schema": "shopping"},
    )

    Id = Column(Integer, primary_key=True, index=True)
    StoreId = Column(String(36), ForeignKey("shopping.stores.Id"), nullable=False, index=True)
    Email = Column(String(254), nullable=False, index=True)
    InvitedByUserId = Column(Integer, ForeignKey("auth.users.Id"), nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class ShoppingList(Base):
    __tablename__ = "shopping_lists"
    __table_args__ = {"schema": "shopping"}

    # One "current" list per store; the whole item array is read and written as a unit.
    StoreId = Column(String(36), ForeignKey("shopping.stores.Id"), primary_key=True)
    Items = Column(JSON, nullable=False, default=list)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


class LearnedItem(Base):
    __tablename__ = "learned_items"
    __table_args__ = (
        Index("ix_learned_items_store_name", "StoreId", "Name"),
        {"schema": "shopping"},
    )

    Id = Column(String(36), primary_key=True)
    StoreId = Column(String(36), ForeignKey("shopping.stores.Id"), nullable=False, index=True)
    Name = Column(String(500), nullable=False)
    SectionId = Column(String(100), nullable=False)
    Frequency = Column(Integer, nullable=False, default=1)
    LastUsed = Column(DateTime(timezone=True), nullable=False)
    CreatedByUserId = Column(Integer, nullable=False)
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
