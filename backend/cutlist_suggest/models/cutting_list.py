"""Cutting list ORM models — the historical order records scanned for ratio samples."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON

from cutlist_suggest.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CuttingListModel(Base):
    __tablename__ = "cutting_lists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    week_number = Column(Integer)

    # [{"product_name": "...", ...}, ...] as stored by the order-entry side
    sections = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    # Relationships
    items = relationship("CuttingListItemModel", back_populates="cutting_list", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<CuttingList id={self.id} title={self.title!r}>"


class CuttingListItemModel(Base):
    __tablename__ = "cutting_list_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cutting_list_id = Column(Integer, ForeignKey("cutting_lists.id"), nullable=False, index=True)

    work_order_id = Column(String, nullable=False)
    size = Column(String, nullable=False)
    profile_type = Column(String, nullable=False)
    length = Column(Float, nullable=False)  # millimetres

    quantity = Column(Integer, nullable=False)  # pieces cut
    order_quantity = Column(Integer)  # pieces ordered

    # Relationships
    cutting_list = relationship("CuttingListModel", back_populates="items")

    def __repr__(self) -> str:
        return (
            f"<CuttingListItem work_order={self.work_order_id} "
            f"profile={self.profile_type} qty={self.quantity}/{self.order_quantity}>"
        )
