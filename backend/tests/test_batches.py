"""Batch lifecycle and default-batch preference tests."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.errors import AlreadyExistsError, BatchLockedError, NotFoundError, ValidationError
from packtrack.schemas.batch import BatchCreate
from packtrack.services.batches import (
    activate_batch,
    create_batch,
    delete_batch,
    get_activated_batches,
    get_batch,
    get_batch_config,
    list_batches,
    save_batch_config,
)
from packtrack.services.packing_boxes import (
    import_packing_list_for_batch,
    list_boxes,
)


@pytest.mark.unit
@pytest.mark.asyncio
class TestBatchLifecycle:

    async def test_create_and_get(self, db_session: AsyncSession):
        batch = await create_batch(db_session, BatchCreate(
            batch_id="701", items=[{"sku": "A001", "quantity": 3}], car_vins=["VIN1", "VIN2"],
        ))
        assert batch.name == "Batch 701"
        assert batch.total_cars == 2

        fetched = await get_batch(db_session, "701")
        assert fetched.items == [{"sku": "A001", "name": None, "quantity": 3}]

    async def test_duplicate_rejected(self, db_session: AsyncSession, planning_batch):
        with pytest.raises(AlreadyExistsError):
            await create_batch(db_session, BatchCreate(batch_id="603"))

    async def test_get_unknown(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await get_batch(db_session, "nope")

    async def test_activate_locks_packing_list(self, db_session: AsyncSession, planning_batch):
        batch = await activate_batch(db_session, "603")
        assert batch.status == "in_progress"

        stats = await import_packing_list_for_batch(
            db_session, "603", "CASE NO,PART NO,QTY\nC1,A001,1\n",
        )
        assert stats.boxes == 0
        assert stats.errors

    async def test_only_planning_batches_activate(self, db_session: AsyncSession):
        await create_batch(db_session, BatchCreate(batch_id="702", status="completed"))
        with pytest.raises(ValidationError):
            await activate_batch(db_session, "702")

    async def test_delete_removes_boxes(self, db_session: AsyncSession, planning_batch):
        await import_packing_list_for_batch(db_session, "603", "CASE NO,PART NO,QTY\nC1,A001,1\n")

        await delete_batch(db_session, "603")

        assert await list_boxes(db_session, "603") == []
        assert await list_batches(db_session) == []

    async def test_delete_active_refused(self, db_session: AsyncSession, active_batch):
        with pytest.raises(BatchLockedError):
            await delete_batch(db_session, "604")


@pytest.mark.unit
@pytest.mark.asyncio
class TestBatchConfig:

    async def test_no_activated_batches_falls_back_to_default(self, db_session: AsyncSession):
        config = await get_batch_config(db_session)
        assert config.active_batch == "DEFAULT"
        assert config.available_batches == []

    async def test_first_activated_batch_is_the_fallback(self, db_session: AsyncSession, active_batch):
        assert await get_activated_batches(db_session) == ["604"]
        config = await get_batch_config(db_session)
        assert config.active_batch == "604"

    async def test_stored_preference(self, db_session: AsyncSession, active_batch):
        await create_batch(db_session, BatchCreate(batch_id="605", status="in_progress"))

        config = await save_batch_config(db_session, "605", "lead@example.com")

        assert config.active_batch == "605"
        assert config.available_batches == ["604", "605"]
        assert config.updated_by == "lead@example.com"

    async def test_preference_must_be_activated(self, db_session: AsyncSession, planning_batch):
        with pytest.raises(ValidationError):
            await save_batch_config(db_session, "603", "lead@example.com")
