"""
Database Models - Remote Record Store

Two tables back the remote paginated store:
- upload_batches: one row per ingested upload; its count per owner is the
  batch count the cache reconciler compares against
- sales_records: normalized line items, paged by (sold_at, id)
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


class UploadBatch(Base):
    """One ingested upload file"""

    __tablename__ = "upload_batches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    source_name: Mapped[Optional[str]] = mapped_column(String(500))
    file_hash: Mapped[Optional[str]] = mapped_column(String(64))
    row_count: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    records: Mapped[List["SalesRecordRow"]] = relationship(back_populates="batch")


class SalesRecordRow(Base):
    """One normalized POS line item"""

    __tablename__ = "sales_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(100), nullable=False)
    batch_id: Mapped[int] = mapped_column(ForeignKey("upload_batches.id", ondelete="CASCADE"), nullable=False)

    bill_number: Mapped[str] = mapped_column(String(100), nullable=False)
    sold_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    branch: Mapped[str] = mapped_column(String(200), default="")
    channel: Mapped[str] = mapped_column(String(100), default="")
    category_group: Mapped[str] = mapped_column(String(200), default="")
    item_name: Mapped[str] = mapped_column(String(300), default="")
    quantity: Mapped[int] = mapped_column(Integer, default=0)
    unit_price: Mapped[float] = mapped_column(Float, default=0.0)
    net_revenue: Mapped[float] = mapped_column(Float, default=0.0)
    customer_name: Mapped[Optional[str]] = mapped_column(String(300))

    batch: Mapped[UploadBatch] = relationship(back_populates="records")

    __table_args__ = (
        Index("idx_sales_records_owner_sold_at", "owner_id", "sold_at", "id"),
    )
