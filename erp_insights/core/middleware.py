"""HTTP middleware: CORS, request ids, access logging and the last-resort error envelope."""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from erp_insights.core.config import settings

logger = logging.getLogger("erp_insights.http")

REQUEST_ID_HEADER = "X-Request-Id"


class GatewayEnvelopeMiddleware(BaseHTTPMiddleware):
    """Stamp a request id on every response and log one access line.

    Anything a route or dependency lets escape becomes a JSON
    ``{"success": false, "error": ...}`` 500, never a plain-text page.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error on %s %s [%s]", request.method, request.url.path, request_id)
            response = JSONResponse(
                status_code=500,
                content={"success": False, "error": "Internal server error"},
            )

        elapsed_ms = (time.perf_counter() - started) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
        logger.info(
            "%s %s -> %s in %.1fms [%s]",
            request.method, request.url.path, response.status_code, elapsed_ms, request_id,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    app.add_middleware(GatewayEnvelopeMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
