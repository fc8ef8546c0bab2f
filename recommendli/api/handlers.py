"""
Protected API handlers.

Every route here sits behind the session middleware and receives a per-request `Service`
built from the user's Spotify client.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from recommendli.api.responses import internal_server_error, json_error
from recommendli.auth.adaptor import AuthAdaptor, Endpoint, NotAuthenticatedError
from recommendli.service import Service, ServiceFactory

logger = logging.getLogger(__name__)

ServiceHandler = Callable[[Service], Endpoint]


class HttpHandler:
    def __init__(self, svc_factory: ServiceFactory, auth: AuthAdaptor, log: logging.Logger | None = None) -> None:
        self.svc_factory = svc_factory
        self.auth = auth
        self.log = log or logger

    def with_service(self, service_handler: ServiceHandler) -> Endpoint:
        async def endpoint(request: Request) -> Response:
            try:
                client = self.auth.extract_client(request)
            except NotAuthenticatedError as e:
                return json_error(f"user not signed in: {e}", status=401)
            except Exception:
                self.log.exception("getting spotify client")
                return internal_server_error()

            svc = self.svc_factory.new_service(client)
            return await service_handler(svc)(request)

        return endpoint

    def whoami(self, svc: Service) -> Endpoint:
        async def endpoint(request: Request) -> Response:
            try:
                usr = await asyncio.to_thread(svc.current_user)
            except Exception as e:
                self.log.warning("whoami: Spotify lookup failed: %s", e)
                return PlainTextResponse(f"Internal server error: {e}", status_code=500)
            return JSONResponse(content=usr.model_dump(mode="json"))

        return endpoint


def new_router(svc_factory: ServiceFactory, auth: AuthAdaptor, log: logging.Logger | None = None) -> APIRouter:
    handler = HttpHandler(svc_factory, auth, log)
    protected = auth.session_middleware()

    router = APIRouter()
    router.add_api_route("/v1/whoami", protected(handler.with_service(handler.whoami)), methods=["GET"])
    return router
