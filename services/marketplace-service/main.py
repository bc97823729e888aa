"""Marketplace service entry point."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import (
    API_VERSION,
    RATE_LIMIT_PER_MINUTE_IP,
    RATE_LIMIT_PER_MINUTE_USER,
    SEED_SAMPLE_DATA,
    SERVICE_NAME,
)
from database import engine, get_db, init_db
from monitoring import init_profiling
from logging_config import setup_logging
from routers import admin, cart, categories, orders, products, reviews, schedules, users
from routers import auth as auth_router
from security import RateLimitMiddleware

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start profiling on startup; release pooled connections on shutdown."""
    logger.info("Starting marketplace service", extra={
        "version": API_VERSION,
        "database": engine.url.get_backend_name(),
        "seed_sample_data": SEED_SAMPLE_DATA
    })

    init_db()
    init_profiling()

    logger.info("Marketplace service ready")

    yield

    engine.dispose()
    logger.info("Marketplace service stopped")


app = FastAPI(
    title="Marketplace Service",
    description="Catalog, carts, checkout, order fulfilment, reviews and staff scheduling",
    version=API_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute_ip=RATE_LIMIT_PER_MINUTE_IP,
    requests_per_minute_user=RATE_LIMIT_PER_MINUTE_USER
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

FastAPIInstrumentor.instrument_app(app)
SQLAlchemyInstrumentor().instrument(engine=engine)


@app.get("/health")
async def health(db: Session = Depends(get_db)):
    """Liveness plus a round trip to the database."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check failed: database unreachable", extra={"error": str(e)})
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "service": SERVICE_NAME, "database": "unreachable"}
        )
    return {"status": "healthy", "service": SERVICE_NAME, "version": API_VERSION}


app.include_router(auth_router.router)
app.include_router(users.router)
app.include_router(categories.router)
app.include_router(products.router)
app.include_router(reviews.router)
app.include_router(cart.router)
app.include_router(orders.router)
app.include_router(schedules.router)
app.include_router(admin.router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
