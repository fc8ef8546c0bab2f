"""
recommendli API server.

Mounts the Spotify login endpoints (callback + UI entry point), the protected API router and
a public health check.

Login routes take their paths from AUTH_REDIRECT_URL / AUTH_UI_REDIRECT_URL (by default
/recommendli/v1/auth/...). The API router is mounted at the root (/v1/whoami), so the two sets of
paths do not share a prefix unless those URLs are configured to.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request

from recommendli.api.handlers import new_router
from recommendli.auth.adaptor import AuthAdaptor
from recommendli.auth.config import load_auth_config
from recommendli.service import ServiceFactory

logger = logging.getLogger(__name__)


def create_app(auth: Optional[AuthAdaptor] = None, svc_factory: Optional[ServiceFactory] = None) -> FastAPI:
    """
    Build the FastAPI app.

    Without an explicit adaptor one is built from the environment (see `load_auth_config`).
    """
    if auth is None:
        auth = AuthAdaptor.from_config(load_auth_config())
    if svc_factory is None:
        svc_factory = ServiceFactory()

    app = FastAPI(title="recommendli")

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming HTTP requests."""
        start_time = time.time()
        logger.debug("%s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
            raise

    @app.get("/healthz")
    def healthz() -> Dict[str, Any]:
        return {"ok": True}

    app.add_api_route(auth.callback_path(), auth.handle_callback, methods=["GET"])
    app.add_api_route(auth.ui_redirect_path(), auth.begin_from_query, methods=["GET"])
    app.include_router(new_router(svc_factory, auth))

    return app


def run(host: str = "0.0.0.0", port: int = 9999) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    app = create_app()
    logger.info("Starting recommendli server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
