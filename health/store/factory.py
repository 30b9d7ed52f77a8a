"""Store factory: returns the in-memory or SQL adapter based on config.

In memory mode the store holds the bundled reference data only (plus
whatever tests seed it with). In database mode the SqlStore shares
the process-wide session factory.
"""

import asyncio
from functools import lru_cache
from itertools import product

import structlog

from shared.config import settings

from health.domain.models import MeasurementType, Sex
from health.reference.curves import ReferenceCurveStore
from health.store.memory import InMemoryStore
from health.store.protocol import ChildHealthStore

logger = structlog.get_logger()


@lru_cache(maxsize=1)
def memory_store() -> InMemoryStore:
    return InMemoryStore()


def get_store() -> ChildHealthStore:
    """Return the Store for the configured store_mode. Also the FastAPI dependency."""
    if settings.store_mode == "database":
        from health.store.sql import SqlStore
        from shared.database import get_session_factory

        return SqlStore(get_session_factory())
    return memory_store()


async def load_reference_curves(store: ChildHealthStore) -> ReferenceCurveStore:
    """Resolve every (sex, measurement type) curve once, for startup."""
    combos = list(product(Sex, MeasurementType))
    curves = await asyncio.gather(
        *(store.reference_curve_for(sex, measurement_type) for sex, measurement_type in combos)
    )
    points = [point for curve in curves for point in curve]
    reference = ReferenceCurveStore(points)
    logger.info("reference_curves_loaded", points=len(reference))
    return reference
