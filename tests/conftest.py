"""
Test Suite Configuration
"""
from datetime import datetime
from typing import AsyncGenerator, Callable, List

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from salespulse.config.settings import AnalyticsSettings
from salespulse.data.records import SalesRecord
from salespulse.database.models import Base
from salespulse.sync.remote_store import SqlRemoteStore


@pytest.fixture
def analytics_settings() -> AnalyticsSettings:
    """Default analytics thresholds, independent of the environment"""
    return AnalyticsSettings()


@pytest.fixture
def make_record() -> Callable[..., SalesRecord]:
    """Factory for SalesRecord with sensible defaults"""
    def _make(
        bill_number: str = "B-1",
        timestamp: datetime = datetime(2025, 1, 15, 12, 0),
        branch: str = "Kemang",
        channel: str = "Dine In",
        category_group: str = "Food",
        item_name: str = "Nasi Goreng",
        quantity: int = 1,
        unit_price: float = 50000.0,
        net_revenue: float = 50000.0,
        customer_name: str = None,
    ) -> SalesRecord:
        return SalesRecord(
            bill_number=bill_number,
            timestamp=timestamp,
            branch=branch,
            channel=channel,
            category_group=category_group,
            item_name=item_name,
            quantity=quantity,
            unit_price=unit_price,
            net_revenue=net_revenue,
            customer_name=customer_name,
        )
    return _make


@pytest.fixture
def raw_rows() -> List[dict]:
    """Upload rows as a spreadsheet export would provide them"""
    return [
        {
            "Bill Number": "INV-001",
            "Sales Date In": "2025-01-10 12:15:00",
            "Branch": " Kemang ",
            "Visit Purpose": "Dine In",
            "Menu Category": "Food",
            "Menu": "Nasi Goreng",
            "Quantity": "2",
            "Price": "45000",
            "Revenue": "90000",
            "Customer Name": "Budi",
        },
        {
            "Bill Number": "INV-001",
            "Sales Date In": "2025-01-10 12:15:00",
            "Branch": "Kemang",
            "Visit Purpose": "Dine In",
            "Menu Category": "Beverage",
            "Menu": "Es Teh",
            "Quantity": 1,
            "Price": 12000,
            "Revenue": 12000,
            "Customer Name": "Budi",
        },
        {
            "Bill Number": "INV-002",
            "Sales Date In": "11/01/2025 19:40",
            "Branch": "Senopati",
            "Visit Purpose": "GoFood",
            "Menu Category": "Food",
            "Menu": "Sate Ayam",
            "Quantity": "1",
            "Price": "48000",
            "Revenue": "43200",
            "Customer Name": "",
        },
    ]


@pytest.fixture
def sample_records(make_record) -> List[SalesRecord]:
    """
    Two weeks of records: 1-7 Jan 2025 (previous) and 8-14 Jan 2025 (current).

    Current: 4 bills, revenue 400k. Previous: 2 bills, revenue 200k.
    """
    return [
        # previous window
        make_record("P-1", datetime(2025, 1, 2, 12, 0), net_revenue=100000.0, customer_name="Ani"),
        make_record("P-2", datetime(2025, 1, 4, 19, 0), branch="Senopati", channel="GoFood",
                    net_revenue=100000.0),
        # current window
        make_record("C-1", datetime(2025, 1, 8, 12, 10), net_revenue=60000.0, quantity=2,
                    customer_name="Ani"),
        make_record("C-1", datetime(2025, 1, 8, 12, 10), category_group="Beverage", item_name="Es Teh",
                    net_revenue=20000.0, quantity=2, unit_price=10000.0, customer_name="Ani"),
        make_record("C-2", datetime(2025, 1, 11, 12, 30), branch="Senopati", net_revenue=120000.0,
                    item_name="Sate Ayam", quantity=3, customer_name="Budi"),
        make_record("C-3", datetime(2025, 1, 12, 13, 5), channel="GoFood", net_revenue=80000.0,
                    item_name="Soto Betawi", customer_name="Budi"),
        make_record("C-4", datetime(2025, 1, 13, 19, 45), branch="Senopati", channel="GoFood",
                    net_revenue=120000.0, item_name="Sate Ayam", quantity=2, customer_name="Citra"),
    ]


@pytest.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """File-backed SQLite database with the schema created"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'salespulse.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def sql_store(session_factory) -> SqlRemoteStore:
    """Remote store on the test database"""
    return SqlRemoteStore(session_factory)
