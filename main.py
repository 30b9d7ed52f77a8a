"""FastAPI application entry point.

Wires together: middleware, exception handlers, routes, metrics.
Loads reference curves and the formulary once at startup.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.config import settings
from shared.database import dispose_engine
from shared.exceptions import ProblemDetailError
from shared.logging import configure_logging
from shared.metrics import create_metrics_app
from shared.middleware import (
    RequestIdMiddleware,
    http_exception_handler,
    problem_detail_handler,
    request_validation_handler,
)
from health.api import router as health_router
from health.dosing import MedicationDoseEngine
from health.percentiles import PercentileCalculator
from health.reference.medications import default_formulary
from health.store.factory import get_store, load_reference_curves

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    configure_logging(json_output=True)
    logger.info(
        "app_starting",
        store_mode=settings.store_mode,
        database_url=settings.database_url.split("@")[-1],  # hide credentials
    )
    curves = await load_reference_curves(get_store())
    app.state.calculator = PercentileCalculator(curves)
    app.state.dose_engine = MedicationDoseEngine(default_formulary())
    yield
    logger.info("app_shutting_down")
    if settings.store_mode == "database":
        await dispose_engine()


app = FastAPI(
    title="Child Health Analytics API",
    description=(
        "Classifies growth measurements against WHO reference curves, analyzes "
        "feeding, sleep and diaper patterns, raises growth alerts, checks "
        "medication doses and assembles shareable health reports."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestIdMiddleware)

# All errors emit application/problem+json (RFC 9457)
app.add_exception_handler(ProblemDetailError, problem_detail_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)

app.include_router(health_router)

metrics_app = create_metrics_app()
app.mount("/metrics", metrics_app)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
