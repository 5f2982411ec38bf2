"""
receiptflow — FastAPI application entry-point.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from receiptflow.config import settings
from receiptflow.database import Base, SessionLocal, engine
from receiptflow.pipeline import build_coordinator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(name)-30s  %(levelname)-5s  %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: ensure storage dirs + tables exist, wire the pipeline
    for directory in (settings.DATA_DIR, settings.UPLOAD_DIR, settings.SCRATCH_DIR):
        os.makedirs(directory, exist_ok=True)
    # Import models so Base.metadata knows about them
    import receiptflow.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ready (%s)", settings.DATABASE_URL)

    app.state.coordinator = build_coordinator(settings, SessionLocal)
    yield
    logger.info("Shutting down, waiting for OCR workers")
    app.state.coordinator.shutdown()


app = FastAPI(
    title="receiptflow",
    description="Receipt PDF → validate → OCR → structured receipt",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    return {"service": "receiptflow", "version": "0.1.0", "status": "running"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# ── Register API router ──────────────────────────────────────────────────
from receiptflow.routers.receipts import router as receipts_router  # noqa: E402

app.include_router(receipts_router, tags=["Receipts"])
