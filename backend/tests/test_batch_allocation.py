"""Batch allocation ledger tests."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.errors import InsufficientStockError
from packtrack.models.batch import Batch
from packtrack.services.batch_allocation import (
    add_to_batch_allocation,
    get_all_batch_allocations,
    get_batch_allocation,
    get_batch_progress,
    get_location_directory,
    remove_from_batch_allocation,
    remove_from_largest_batches,
    set_batch_allocation,
    zero_all_stock,
    zero_default_stock,
    zero_stock_for_batch,
)
from packtrack.services.expected_inventory import get_expected_entry


@pytest.mark.unit
@pytest.mark.asyncio
class TestLedgerMutations:

    async def test_add_creates_row(self, db_session: AsyncSession):
        row = await add_to_batch_allocation(db_session, "A001", "logistics", "603", 50)

        assert row.id == "A001_logistics"
        assert row.allocations == {"603": 50}
        assert row.total_allocated == 50

    async def test_add_accumulates_per_batch(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 50)
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 5)
        row = await add_to_batch_allocation(db_session, "A001", "logistics", "DEFAULT", 7)

        assert row.allocations == {"603": 55, "DEFAULT": 7}
        assert row.total_allocated == 62

    async def test_remove_decrements(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 50)
        row = await remove_from_batch_allocation(db_session, "A001", "logistics", "603", 20)

        assert row.allocations == {"603": 30}
        assert row.total_allocated == 30

    async def test_remove_to_zero_drops_entry(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 10)
        await add_to_batch_allocation(db_session, "A001", "logistics", "DEFAULT", 3)
        row = await remove_from_batch_allocation(db_session, "A001", "logistics", "603", 10)

        assert row.allocations == {"DEFAULT": 3}
        assert row.total_allocated == 3

    async def test_remove_more_than_available_is_rejected(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 5)

        with pytest.raises(InsufficientStockError) as exc_info:
            await remove_from_batch_allocation(db_session, "A001", "logistics", "603", 6)

        assert exc_info.value.available == 5
        assert exc_info.value.requested == 6
        assert "Available: 5, trying to remove: 6" in exc_info.value.message

        # Nothing was written
        row = await get_batch_allocation(db_session, "A001", "logistics")
        assert row.allocations == {"603": 5}
        assert row.total_allocated == 5

    async def test_remove_from_missing_row_is_rejected(self, db_session: AsyncSession):
        with pytest.raises(InsufficientStockError):
            await remove_from_batch_allocation(db_session, "Z999", "logistics", "603", 1)
        assert await get_batch_allocation(db_session, "Z999", "logistics") is None

    async def test_remove_other_batch_is_rejected(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 5)
        with pytest.raises(InsufficientStockError):
            await remove_from_batch_allocation(db_session, "A001", "logistics", "604", 1)

    async def test_set_absolute(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 5)
        row = await set_batch_allocation(db_session, "A001", "logistics", "603", 12)
        assert row.allocations == {"603": 12}
        assert row.total_allocated == 12

        row = await set_batch_allocation(db_session, "A001", "logistics", "603", 0)
        assert row.allocations == {}
        assert row.total_allocated == 0

    async def test_remove_from_largest_batches(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 4)
        await add_to_batch_allocation(db_session, "A001", "logistics", "604", 10)
        await add_to_batch_allocation(db_session, "A001", "logistics", "DEFAULT", 2)

        row, taken = await remove_from_largest_batches(db_session, "A001", "logistics", 12)

        assert taken == {"604": 10, "603": 2}
        assert row.allocations == {"603": 2, "DEFAULT": 2}
        assert row.total_allocated == 4

    async def test_remove_from_largest_batches_all_or_nothing(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 4)

        with pytest.raises(InsufficientStockError):
            await remove_from_largest_batches(db_session, "A001", "logistics", 5)

        row = await get_batch_allocation(db_session, "A001", "logistics")
        assert row.total_allocated == 4

    async def test_total_always_matches_allocations(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "production_zone_3", "603", 8)
        await add_to_batch_allocation(db_session, "A001", "production_zone_3", "DEFAULT", 4)
        await remove_from_batch_allocation(db_session, "A001", "production_zone_3", "603", 3)
        await set_batch_allocation(db_session, "A001", "production_zone_3", "605", 9)

        for row in await get_all_batch_allocations(db_session):
            assert row.total_allocated == sum(row.allocations.values())
            assert all(q >= 0 for q in row.allocations.values())


@pytest.mark.unit
@pytest.mark.asyncio
class TestLedgerAnalysis:

    async def test_batch_progress_excludes_default(self, db_session: AsyncSession):
        db_session.add(Batch(
            batch_id="603", items=[{"sku": "A001", "name": "Bolt", "quantity": 40}],
            car_vins=[], status="in_progress",
        ))
        await db_session.commit()
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 10)
        await add_to_batch_allocation(db_session, "A001", "production_zone_1", "603", 10)
        await add_to_batch_allocation(db_session, "A001", "logistics", "DEFAULT", 99)

        progress = await get_batch_progress(db_session)

        assert progress == [{
            "batch_id": "603",
            "total_expected": 40,
            "total_allocated": 20,
            "completion_percentage": 50.0,
        }]

    async def test_location_directory_order(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "production_zone_10", "603", 1)
        await add_to_batch_allocation(db_session, "A001", "production_zone_2", "603", 2)
        await add_to_batch_allocation(db_session, "B002", "logistics", "603", 3)
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 4)

        directory = await get_location_directory(db_session)

        assert [d["location"] for d in directory] == [
            "logistics", "production_zone_2", "production_zone_10",
        ]
        assert directory[0] == {"location": "logistics", "sku_count": 2, "total_units": 7}


@pytest.mark.unit
@pytest.mark.asyncio
class TestCleanStock:

    async def test_zero_batch_updates_both_layers(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 5)
        await add_to_batch_allocation(db_session, "A001", "logistics", "DEFAULT", 2)
        await add_to_batch_allocation(db_session, "B002", "production_zone_1", "603", 3)

        result = await zero_stock_for_batch(db_session, "603", "admin@example.com")

        assert result == {"skus_affected": 2, "total_zeroed": 8}
        row = await get_batch_allocation(db_session, "A001", "logistics")
        assert row.allocations == {"DEFAULT": 2}
        entry = await get_expected_entry(db_session, "A001", "logistics")
        assert entry.amount == 2
        # Zero totals drop the projection row
        assert await get_expected_entry(db_session, "B002", "production_zone_1") is None

    async def test_zero_default(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 5)
        await add_to_batch_allocation(db_session, "A001", "logistics", "DEFAULT", 2)

        result = await zero_default_stock(db_session, "admin@example.com")

        assert result == {"skus_affected": 1, "total_zeroed": 2}
        row = await get_batch_allocation(db_session, "A001", "logistics")
        assert row.allocations == {"603": 5}

    async def test_zero_all(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 5)
        await add_to_batch_allocation(db_session, "B002", "logistics", "DEFAULT", 2)

        result = await zero_all_stock(db_session, "admin@example.com")

        assert result == {"skus_affected": 2, "total_zeroed": 7}
        for row in await get_all_batch_allocations(db_session):
            assert row.allocations == {}
            assert row.total_allocated == 0
