from __future__ import annotations

import os

import structlog

from services.grocery.app.db.database import get_engine
from services.grocery.app.db.models import Base

logger = structlog.get_logger(__name__)

_TRUTHY = {"1", "true", "yes", "y"}


def auto_create_enabled() -> bool:
    return os.getenv("GROCERY_DB_AUTO_CREATE", "true").strip().lower() in _TRUTHY


def init_db() -> bool:
    """Create the grocery tables when GROCERY_DB_AUTO_CREATE allows it.

    Returns True if tables were created or checked. Status updates are
    compare-and-swap through UPDATE ... RETURNING, so a backend without it is rejected.
    """

    if not auto_create_enabled():
        logger.info("Skipping table creation", reason="GROCERY_DB_AUTO_CREATE is off")
        return False

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    if not engine.dialect.update_returning:
        raise RuntimeError(
            f"Database backend {engine.dialect.name!r} does not support UPDATE ... RETURNING."
        )

    logger.info(
        "Grocery tables ready",
        backend=engine.dialect.name,
        tables=sorted(Base.metadata.tables),
    )
    return True
