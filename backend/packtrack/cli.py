"""Management CLI.

Usage:
    python -m packtrack.cli create-tables          # Create missing tables (dev only; use Alembic in prod)
    python -m packtrack.cli reconcile [--fix]      # Compare expected inventory with the ledger
    python -m packtrack.cli zero-batch <batch_id>  # Remove a batch's stock everywhere
"""

import asyncio
import logging
import sys

from packtrack.database import async_session, create_all_tables, engine
from packtrack.services.batch_allocation import zero_stock_for_batch
from packtrack.services.expected_inventory import reconcile_expected_inventory

CLI_ACTOR = "cli"


async def _create_tables():
    await create_all_tables()
    print("Tables created.")


async def _reconcile(fix: bool):
    async with async_session() as db:
        report = await reconcile_expected_inventory(db, auto_fix=fix)

    for m in report["mismatches"]:
        print(
            f"  {m['sku']} @ {m['location']}: expected={m['expected_amount']} "
            f"calculated={m['calculated_amount']} diff={m['diff']:+d}"
        )
    print(
        f"\n{report['total_skus']} ledger row(s), {report['matches']} match, "
        f"{len(report['mismatches'])} mismatch"
        + (" (fixed)" if report["fixed"] else "")
    )


async def _zero_batch(batch_id: str):
    async with async_session() as db:
        result = await zero_stock_for_batch(db, batch_id, CLI_ACTOR)
    print(
        f"Zeroed batch {batch_id}: {result['skus_affected']} SKU/location(s), "
        f"{result['total_zeroed']} unit(s)"
    )


async def _run(coro):
    try:
        await coro
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    cmd = argv[0] if argv else ""
    if cmd == "create-tables":
        asyncio.run(_run(_create_tables()))
    elif cmd == "reconcile":
        asyncio.run(_run(_reconcile("--fix" in argv[1:])))
    elif cmd == "zero-batch" and len(argv) > 1:
        asyncio.run(_run(_zero_batch(argv[1])))
    else:
        print("Usage: python -m packtrack.cli [create-tables|reconcile [--fix]|zero-batch <batch_id>]")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
