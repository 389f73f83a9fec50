from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pharmastock.database import Base


class Product(Base):
    __tablename__ = "products"
    # Snapshots match batches by id across weeks, so SQLite must never reuse a freed rowid
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    strength: Mapped[str] = mapped_column(String, default="")  # e.g. "500mg"
    reorder_threshold: Mapped[int] = mapped_column(Integer, default=0)
    supplier_lead_time: Mapped[int] = mapped_column(Integer, default=0)  # days

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    batches: Mapped[list["Batch"]] = relationship("Batch", back_populates="product", cascade="all, delete-orphan")


class Batch(Base):
    """A received lot of a product, stocked and expiring independently of its siblings."""

    __tablename__ = "batches"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    batch_number: Mapped[str] = mapped_column(String, unique=True, index=True)
    initial_stock: Mapped[int] = mapped_column(Integer, default=0)
    current_stock: Mapped[int] = mapped_column(Integer, default=0)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    product: Mapped["Product"] = relationship("Product", back_populates="batches")
    usage_logs: Mapped[list["UsageLog"]] = relationship(  # noqa: F821
        "UsageLog", back_populates="batch", cascade="all, delete-orphan"
    )
