from __future__ import annotations

import os

from services.grocery.app.services.catalog import seed_default_catalog
from services.grocery.app.services.data_base import DataService
from services.grocery.app.services.data_memory import MemoryDataService

_MEMORY_SERVICE: MemoryDataService | None = None


def get_data_service() -> DataService:
    """Select a data service based on env vars.

    Defaults to the in-memory service so tests and local dev are deterministic unless
    explicitly configured otherwise. The in-memory service is shared across calls so
    state survives between requests, and starts with the default product catalog.
    """

    global _MEMORY_SERVICE

    mode = os.getenv("GROCERY_DATA_SERVICE", "memory").strip().lower()

    if mode == "memory":
        if _MEMORY_SERVICE is None:
            _MEMORY_SERVICE = MemoryDataService()
            seed_default_catalog(_MEMORY_SERVICE)
        return _MEMORY_SERVICE

    if mode == "sql":
        from services.grocery.app.services.data_sql import SqlDataService

        return SqlDataService.from_env()

    raise ValueError(f"Unknown GROCERY_DATA_SERVICE={mode!r}. Expected memory or sql.")
