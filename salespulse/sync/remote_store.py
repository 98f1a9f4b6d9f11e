"""
Remote Record Store

The remote paginated store the cache reconciler pulls from. Documents are
returned in (timestamp, id) order so a page's last document is a stable
cursor for the next request.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, Sequence

import structlog
from sqlalchemy import and_, func, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from salespulse.data.records import SalesRecord
from salespulse.database.connection import get_session_factory
from salespulse.database.models import SalesRecordRow, UploadBatch

logger = structlog.get_logger(__name__)

INSERT_CHUNK_SIZE = 1000


@dataclass(frozen=True)
class PageCursor:
    """Position after the last document of a fetched page"""
    timestamp: datetime
    record_id: Any

    @classmethod
    def after_document(cls, doc: Dict[str, Any]) -> "PageCursor":
        return cls(timestamp=doc["timestamp"], record_id=doc["id"])


class RemoteStore(Protocol):
    """Interface of the remote paginated store"""

    async def count_batches(self, owner_id: str) -> int:
        ...

    async def count_records(self, owner_id: str, after: Optional[datetime] = None) -> int:
        ...

    async def query_records(
        self,
        owner_id: str,
        after: Optional[datetime] = None,
        cursor: Optional[PageCursor] = None,
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        ...


def _row_to_document(row: SalesRecordRow) -> Dict[str, Any]:
    return {
        "id": row.id,
        "bill_number": row.bill_number,
        "timestamp": row.sold_at,
        "branch": row.branch,
        "channel": row.channel,
        "category_group": row.category_group,
        "item_name": row.item_name,
        "quantity": row.quantity,
        "unit_price": row.unit_price,
        "net_revenue": row.net_revenue,
        "customer_name": row.customer_name,
    }


class SqlRemoteStore:
    """
    Remote store backed by the SQLAlchemy tables in salespulse.database.

    Example:
        store = SqlRemoteStore()
        batch_id = await store.add_batch("owner-1", records, source_name="jan.xlsx")
        page = await store.query_records("owner-1", limit=500)
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or get_session_factory()

    async def count_batches(self, owner_id: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(UploadBatch.id)).where(UploadBatch.owner_id == owner_id)
            )
            return int(result.scalar_one())

    async def count_records(self, owner_id: str, after: Optional[datetime] = None) -> int:
        stmt = select(func.count(SalesRecordRow.id)).where(SalesRecordRow.owner_id == owner_id)
        if after is not None:
            stmt = stmt.where(SalesRecordRow.sold_at > after)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def query_records(
        self,
        owner_id: str,
        after: Optional[datetime] = None,
        cursor: Optional[PageCursor] = None,
        limit: int = 1000,
    ) -> List[Dict[str, Any]]:
        stmt = select(SalesRecordRow).where(SalesRecordRow.owner_id == owner_id)
        if after is not None:
            stmt = stmt.where(SalesRecordRow.sold_at > after)
        if cursor is not None:
            stmt = stmt.where(
                or_(
                    SalesRecordRow.sold_at > cursor.timestamp,
                    and_(
                        SalesRecordRow.sold_at == cursor.timestamp,
                        SalesRecordRow.id > cursor.record_id,
                    ),
                )
            )
        stmt = stmt.order_by(SalesRecordRow.sold_at.asc(), SalesRecordRow.id.asc()).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_row_to_document(row) for row in result.scalars().all()]

    async def add_batch(
        self,
        owner_id: str,
        records: Sequence[SalesRecord],
        source_name: Optional[str] = None,
        file_hash: Optional[str] = None,
    ) -> int:
        """
        Store one upload batch and its records in a single transaction.

        Returns:
            The new batch id
        """
        async with self.session_factory() as session:
            async with session.begin():
                batch = UploadBatch(
                    owner_id=owner_id,
                    source_name=source_name,
                    file_hash=file_hash,
                    row_count=len(records),
                )
                session.add(batch)
                await session.flush()

                rows = [
                    {
                        "owner_id": owner_id,
                        "batch_id": batch.id,
                        "bill_number": r.bill_number,
                        "sold_at": r.timestamp,
                        "branch": r.branch,
                        "channel": r.channel,
                        "category_group": r.category_group,
                        "item_name": r.item_name,
                        "quantity": r.quantity,
                        "unit_price": r.unit_price,
                        "net_revenue": r.net_revenue,
                        "customer_name": r.customer_name,
                    }
                    for r in records
                ]
                for i in range(0, len(rows), INSERT_CHUNK_SIZE):
                    await session.execute(insert(SalesRecordRow), rows[i:i + INSERT_CHUNK_SIZE])

                batch_id = batch.id

        logger.info("Stored upload batch", owner_id=owner_id, batch_id=batch_id, records=len(records))
        return batch_id
