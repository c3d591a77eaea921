"""FastAPI application and the process-wide CasaFlow instance.

The CasaFlow object is built lazily from ``CASAFLOW_CONFIG`` on the first
request that needs it, so the API can start (and answer ``/health``) before
the config is in place. Tests swap in their own object with ``set_app``.
"""

import logging
import os
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from ..app import CasaFlow
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_ORIGINS = "http://localhost:3000,http://localhost:5173"

_app: Optional[CasaFlow] = None


def _load_app() -> Optional[CasaFlow]:
    path = os.getenv("CASAFLOW_CONFIG", "config.yaml")
    if not os.path.exists(path):
        logger.warning(f"[Server] config file not found: {path}")
        return None
    try:
        app = CasaFlow(path)
    except (ConfigurationError, OSError) as e:
        logger.error(f"[Server] invalid config {path}: {e}")
        return None
    logger.info(f"[Server] CasaFlow loaded from {path}")
    return app


def require_app() -> CasaFlow:
    """The configured CasaFlow, or 503 when there is none."""
    global _app
    if _app is None:
        _app = _load_app()
    if _app is None:
        raise HTTPException(503, "Not configured. Set CASAFLOW_CONFIG to a valid config file.")
    return _app


def set_app(new_app: Optional[CasaFlow]):
    global _app
    _app = new_app


def _create_api() -> FastAPI:
    _api = FastAPI(title="casaflow", version="0.1.0")

    origins = os.getenv("CASAFLOW_ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS)
    _api.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins.split(",") if o.strip()],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @_api.on_event("shutdown")
    async def _shutdown():
        if _app is not None:
            await _app.shutdown()

    # Routes import require_app from this module
    from .routes import register_routes
    register_routes(_api)
    return _api


api = _create_api()
