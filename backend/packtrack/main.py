import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from packtrack import __version__
from packtrack.config import settings
from packtrack.middleware.exceptions import register_exception_handlers
from packtrack.routers import allocations, batches, expected, health, packing_boxes, stock, transactions
from packtrack.services.scheduler import lifespan

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="PackTrack",
    description="Batch-aware stock ledger and packing box reconciliation",
    version=__version__,
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)
app.include_router(allocations.router, prefix="/api/allocations", tags=["allocations"])
app.include_router(expected.router, prefix="/api/expected", tags=["expected-inventory"])
app.include_router(batches.router, prefix="/api/batches", tags=["batches"])
app.include_router(packing_boxes.router, prefix="/api/packing-boxes", tags=["packing-boxes"])
app.include_router(stock.router, prefix="/api/stock", tags=["stock"])
app.include_router(transactions.router, prefix="/api/transactions", tags=["transactions"])
