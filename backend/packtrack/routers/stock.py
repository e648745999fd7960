"""Stock-change router — orchestrated flows across ledger, log and projection.

Endpoints:
    POST /api/stock/adjust     SET_TO / ADD / SUBTRACT one batch at a location
    POST /api/stock/waste      Write off wasted, lost or defective units
    POST /api/stock/transfer   Move a batch quantity between locations
    POST /api/stock/scan-in    Receive scanned units (box scan + ledger add)

A 200 means the ledger changed.  Follow-up steps that failed (log entry,
projection sync) are listed in ``warnings``.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from packtrack.database import get_db
from packtrack.schemas.stock import (
    ScanInRequest,
    StockAdjustmentRequest,
    StockChangeResult,
    TransferRequest,
    WasteReportRequest,
)
from packtrack.services import stock_flow
from packtrack.utils.cache import STOCK_VIEW_PREFIXES, ReadCache, get_cache

router = APIRouter()


@router.post("/adjust", response_model=StockChangeResult)
async def adjust(
    body: StockAdjustmentRequest,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    result = await stock_flow.adjust_stock(db, body)
    await cache.invalidate(*STOCK_VIEW_PREFIXES)
    return result


@router.post("/waste", response_model=StockChangeResult)
async def waste(
    body: WasteReportRequest,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    result = await stock_flow.report_waste(db, body)
    await cache.invalidate(*STOCK_VIEW_PREFIXES)
    return result


@router.post("/transfer", response_model=StockChangeResult)
async def transfer(
    body: TransferRequest,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    result = await stock_flow.transfer_stock(db, body)
    await cache.invalidate(*STOCK_VIEW_PREFIXES)
    return result


@router.post("/scan-in", response_model=StockChangeResult)
async def scan_in(
    body: ScanInRequest,
    db: AsyncSession = Depends(get_db),
    cache: ReadCache = Depends(get_cache),
):
    result = await stock_flow.scan_in(db, body)
    await cache.invalidate(*STOCK_VIEW_PREFIXES)
    return result
