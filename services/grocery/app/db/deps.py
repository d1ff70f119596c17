from __future__ import annotations

from fastapi import HTTPException
from services.grocery.app.services.data_base import DataService
from services.grocery.app.services.data_factory import get_data_service


def get_data() -> DataService:
    try:
        return get_data_service()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
