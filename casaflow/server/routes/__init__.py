"""Route registration for the casaflow API."""

from fastapi import FastAPI

from .chat import router as chat_router
from .events import router as events_router
from .orchestrator import router as orchestrator_router


def register_routes(app: FastAPI):
    app.include_router(chat_router)
    app.include_router(orchestrator_router)
    app.include_router(events_router)
