from __future__ import annotations

from fastapi.responses import JSONResponse


def json_error(message: str, status: int = 500) -> JSONResponse:
    resp = JSONResponse(status_code=status, content={"error": message})
    resp.headers["Cache-Control"] = "no-store"
    return resp


def internal_server_error() -> JSONResponse:
    # No detail beyond the status reaches the client.
    return json_error("Internal server error", status=500)
