"""Expected inventory projection sync and reconciliation tests."""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.models.expected_inventory import ExpectedInventory
from packtrack.services import expected_inventory as expected_service
from packtrack.services.batch_allocation import (
    add_to_batch_allocation,
    remove_from_batch_allocation,
)
from packtrack.services.expected_inventory import (
    get_expected_entry,
    get_expected_inventory,
    reconcile_expected_inventory,
    sync_expected_from_batch_allocations,
)


@pytest.mark.unit
@pytest.mark.asyncio
class TestSync:

    async def test_add_remove_sync_round_trip(self, db_session: AsyncSession):
        """Ledger 50 in, 20 out, then sync: projection shows 30."""
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 50)
        row = await remove_from_batch_allocation(db_session, "A001", "logistics", "603", 20)
        assert row.total_allocated == 30
        assert row.allocations == {"603": 30}

        amount = await sync_expected_from_batch_allocations(db_session, "A001", "logistics")

        assert amount == 30
        entry = await get_expected_entry(db_session, "A001", "logistics")
        assert entry.amount == 30
        assert entry.counted_by == "SYSTEM_SYNC"

    async def test_sync_is_idempotent(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 12)

        first = await sync_expected_from_batch_allocations(db_session, "A001", "logistics")
        second = await sync_expected_from_batch_allocations(db_session, "A001", "logistics")

        assert first == second == 12
        entries = await get_expected_inventory(db_session)
        assert [(e.id, e.amount) for e in entries] == [("A001_logistics", 12)]

    async def test_sync_uses_known_total(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 12)

        amount = await sync_expected_from_batch_allocations(
            db_session, "A001", "logistics", known_total=12, item_name="Bolt M6",
        )

        assert amount == 12
        entry = await get_expected_entry(db_session, "A001", "logistics")
        assert entry.item_name == "Bolt M6"

    async def test_sync_without_ledger_row_removes_entry(self, db_session: AsyncSession):
        db_session.add(ExpectedInventory(
            id="A001_logistics", sku="A001", location="logistics", amount=9,
        ))
        await db_session.commit()

        amount = await sync_expected_from_batch_allocations(db_session, "A001", "logistics")

        assert amount == 0
        assert await get_expected_entry(db_session, "A001", "logistics") is None

    async def test_sync_failure_is_swallowed(self, db_session: AsyncSession, monkeypatch):
        async def _broken_write(*args, **kwargs):
            raise OperationalError("UPDATE expected_inventory", {}, Exception("db down"))

        monkeypatch.setattr(expected_service, "_write_entry", _broken_write)
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 3)

        amount = await sync_expected_from_batch_allocations(db_session, "A001", "logistics")

        assert amount is None


@pytest.mark.unit
@pytest.mark.asyncio
class TestReconciliation:

    async def _seed_drift(self, db_session: AsyncSession):
        await add_to_batch_allocation(db_session, "A001", "logistics", "603", 10)
        await add_to_batch_allocation(db_session, "B002", "logistics", "603", 4)
        await add_to_batch_allocation(db_session, "C003", "logistics", "603", 6)
        await sync_expected_from_batch_allocations(db_session, "A001", "logistics")
        db_session.add_all([
            # stale amount
            ExpectedInventory(id="B002_logistics", sku="B002", location="logistics", amount=1),
            # no ledger row at all
            ExpectedInventory(id="Z999_logistics", sku="Z999", location="logistics", amount=5),
        ])
        await db_session.commit()
        # C003 has no projection row

    async def test_report_lists_every_mismatch(self, db_session: AsyncSession):
        await self._seed_drift(db_session)

        report = await reconcile_expected_inventory(db_session)

        assert report["total_skus"] == 3
        assert report["matches"] == 1
        assert report["fixed"] is False
        by_sku = {m["sku"]: m for m in report["mismatches"]}
        assert by_sku["B002"]["diff"] == 3
        assert by_sku["C003"]["expected_amount"] == 0
        assert by_sku["C003"]["calculated_amount"] == 6
        assert by_sku["Z999"]["diff"] == -5

    async def test_auto_fix_rebuilds_projection(self, db_session: AsyncSession):
        await self._seed_drift(db_session)

        report = await reconcile_expected_inventory(db_session, auto_fix=True)
        assert report["fixed"] is True

        entries = {e.sku: e.amount for e in await get_expected_inventory(db_session)}
        assert entries == {"A001": 10, "B002": 4, "C003": 6}

        again = await reconcile_expected_inventory(db_session)
        assert again["mismatches"] == []
        assert again["matches"] == 3
