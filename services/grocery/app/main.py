"""Grocery pickup API service entrypoint."""

import os

from fastapi import FastAPI

from services.grocery.app.db.init_db import init_db
from services.grocery.app.routers.cart import router as cart_router
from services.grocery.app.routers.fulfillment import router as fulfillment_router
from services.grocery.app.routers.order import router as order_router
from services.grocery.app.utils.logging import configure_logging

app = FastAPI(title="Grocery Pickup API")

app.include_router(cart_router)
app.include_router(order_router)
app.include_router(fulfillment_router)


@app.on_event("startup")
def _startup() -> None:
    configure_logging()
    if os.getenv("GROCERY_DATA_SERVICE", "memory").strip().lower() == "sql":
        init_db()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
