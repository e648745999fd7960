"""HTTP API tests: routing, response envelopes and error mapping."""

import pytest
from httpx import AsyncClient

from packtrack.main import app
from packtrack.utils.cache import ReadCache, get_cache

OPERATOR = "op@example.com"


class RecordingCache(ReadCache):
    """Disabled cache that remembers which prefixes were invalidated."""

    def __init__(self):
        super().__init__("redis://localhost:6379/0", enabled=False)
        self.invalidated: list[tuple[str, ...]] = []

    async def invalidate(self, *prefixes: str) -> None:
        self.invalidated.append(prefixes)


@pytest.mark.api
@pytest.mark.asyncio
class TestHealth:

    async def test_liveness(self, client: AsyncClient):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_readiness_with_cache_disabled(self, client: AsyncClient):
        resp = await client.get("/health/ready")
        assert resp.status_code == 200
        body = resp.json()
        assert body["checks"]["database"] == "ok"
        assert body["checks"]["redis"] == "disabled"


@pytest.mark.api
@pytest.mark.asyncio
class TestAllocationEndpoints:

    async def test_add_then_remove(self, client: AsyncClient):
        resp = await client.post(
            "/api/allocations/A001/logistics/add", json={"batch_id": "603", "quantity": 50},
        )
        assert resp.status_code == 200
        assert resp.json()["allocations"] == {"603": 50}

        resp = await client.post(
            "/api/allocations/A001/logistics/remove", json={"batch_id": "603", "quantity": 20},
        )
        assert resp.status_code == 200
        assert resp.json()["total_allocated"] == 30

        resp = await client.get("/api/expected", params={"location": "logistics"})
        assert resp.status_code == 200
        assert [(e["sku"], e["amount"]) for e in resp.json()] == [("A001", 30)]

    async def test_unknown_row_is_404_envelope(self, client: AsyncClient):
        resp = await client.get("/api/allocations/Z999/logistics")
        assert resp.status_code == 404
        error = resp.json()["error"]
        assert error["code"] == "NOT_FOUND"
        assert "Z999" in error["message"]

    async def test_insufficient_stock_details(self, client: AsyncClient):
        await client.post(
            "/api/allocations/A001/logistics/add", json={"batch_id": "603", "quantity": 5},
        )

        resp = await client.post(
            "/api/allocations/A001/logistics/remove", json={"batch_id": "603", "quantity": 6},
        )

        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["available"] == 5
        assert error["details"]["requested"] == 6
        assert error["details"]["batch_id"] == "603"

    async def test_request_validation_envelope(self, client: AsyncClient):
        resp = await client.post(
            "/api/allocations/A001/logistics/add", json={"batch_id": "603", "quantity": 0},
        )
        assert resp.status_code == 422
        error = resp.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert any("quantity" in e["field"] for e in error["details"]["errors"])

    async def test_locations_directory(self, client: AsyncClient):
        await client.post(
            "/api/allocations/A001/production_zone_1/add", json={"batch_id": "603", "quantity": 3},
        )
        resp = await client.get("/api/allocations/locations")
        assert resp.json() == [{"location": "production_zone_1", "sku_count": 1, "total_units": 3}]


@pytest.mark.api
@pytest.mark.asyncio
class TestPackingBoxEndpoints:

    async def test_template_download(self, client: AsyncClient):
        resp = await client.get("/api/packing-boxes/template")
        assert resp.status_code == 200
        assert resp.text.splitlines()[0] == "CASE NO,PART NO,QTY"

    async def test_upload_and_scan(self, client: AsyncClient, packing_list_csv):
        resp = await client.post(
            "/api/packing-boxes/603/import",
            files={"file": ("list.csv", packing_list_csv.encode("utf-8"), "text/csv")},
        )
        assert resp.status_code == 200
        stats = resp.json()
        assert stats["boxes"] == 1
        assert stats["skipped_rows"] == 2

        resp = await client.post(
            "/api/packing-boxes/603/C1/scan",
            json={"sku": "A001", "qty": 10, "user_email": OPERATOR},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "complete"

        resp = await client.get("/api/packing-boxes/603/C1/scans")
        assert [(e["sku"], e["qty"]) for e in resp.json()] == [("A001", 10)]

    async def test_import_into_activated_batch(self, client: AsyncClient, planning_batch):
        await client.post(
            "/api/packing-boxes/603/import",
            files={"file": ("list.csv", b"CASE NO,PART NO,QTY\nC1,A001,10\n", "text/csv")},
        )
        await client.post("/api/batches/603/activate")

        resp = await client.post(
            "/api/packing-boxes/603/import",
            files={"file": ("list.csv", b"CASE NO,PART NO,QTY\nC9,B002,1\n", "text/csv")},
        )
        assert resp.status_code == 200
        assert resp.json()["boxes"] == 0
        assert resp.json()["errors"]

        resp = await client.post(
            "/api/packing-boxes/603/import-mapped",
            files={"file": ("list.csv", b"C9,B002,1\n", "text/csv")},
            data={"case_no_index": "0", "part_no_index": "1", "qty_index": "2"},
        )
        assert resp.status_code == 200
        assert resp.json()["boxes"] == 0

        boxes = (await client.get("/api/packing-boxes/603")).json()
        assert [(b["case_no"], b["expected_by_sku"]) for b in boxes] == [("C1", {"A001": 10})]

    async def test_all_invalid_import_invalidates_progress(self, client: AsyncClient):
        recorder = RecordingCache()
        app.dependency_overrides[get_cache] = lambda: recorder

        resp = await client.post(
            "/api/packing-boxes/603/import",
            files={"file": ("list.csv", b"CASE NO,PART NO,QTY\nC1,,x\n", "text/csv")},
        )

        assert resp.json()["boxes"] == 0
        assert resp.json()["skipped_rows"] == 1
        assert ("progress",) in recorder.invalidated

    async def test_unknown_box(self, client: AsyncClient):
        resp = await client.get("/api/packing-boxes/603/NOPE")
        assert resp.status_code == 404


@pytest.mark.api
@pytest.mark.asyncio
class TestStockEndpoints:

    async def test_adjust_and_list_transactions(self, client: AsyncClient):
        resp = await client.post("/api/stock/adjust", json={
            "sku": "A001", "location": "logistics", "batch_id": "603",
            "mode": "ADD", "quantity": 8, "reason": "found", "performed_by": OPERATOR,
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["allocation"]["total_allocated"] == 8
        assert body["warnings"] == []

        resp = await client.get("/api/transactions", params={"sku": "A001", "limit": 10})
        page = resp.json()
        assert page["total"] == 1
        assert page["limit"] == 10
        assert page["items"][0]["transaction_type"] == "adjustment"

    async def test_bad_mode_rejected(self, client: AsyncClient):
        resp = await client.post("/api/stock/adjust", json={
            "sku": "A001", "location": "logistics", "mode": "MULTIPLY",
            "quantity": 1, "reason": "x", "performed_by": OPERATOR,
        })
        assert resp.status_code == 422

    async def test_transaction_not_found(self, client: AsyncClient):
        resp = await client.get("/api/transactions/missing")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.api
@pytest.mark.asyncio
class TestBatchEndpoints:

    async def test_create_activate_and_set_default(self, client: AsyncClient):
        resp = await client.post("/api/batches", json={"batch_id": "610"})
        assert resp.status_code == 201

        resp = await client.post("/api/batches", json={"batch_id": "610"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "ALREADY_EXISTS"

        resp = await client.post("/api/batches/610/activate")
        assert resp.json()["status"] == "in_progress"

        resp = await client.put(
            "/api/batches/config/default",
            json={"active_batch": "610", "updated_by": OPERATOR},
        )
        assert resp.status_code == 200
        assert resp.json()["active_batch"] == "610"

    async def test_default_must_be_activated(self, client: AsyncClient, planning_batch):
        resp = await client.put(
            "/api/batches/config/default",
            json={"active_batch": "603", "updated_by": OPERATOR},
        )
        assert resp.status_code == 422
