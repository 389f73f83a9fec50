from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pharmastock.database import Base


class SnapshotType(str, PyEnum):
    WEEK_START = "week_start"
    WEEK_END = "week_end"


class InventorySnapshot(Base):
    """Frozen copy of every batch at capture time. Rows are never updated."""

    __tablename__ = "inventory_snapshots"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    snapshot_type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    # JSON array of batch entries, e.g. '[{"batch_id":1,"current_stock":60,...}]'
    snapshot_data: Mapped[str] = mapped_column(Text, default="[]")
    snapshot_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
