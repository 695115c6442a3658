import time
import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from model_eval.log import get_logger, log_event

logger = get_logger(__name__)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tags each API call with a correlation id.

    A caller-supplied ``X-Request-Id`` is kept, otherwise a uuid4 is minted. The id
    is stored on ``request.state.request_id`` so benchmark runs can log it, returned
    in the response header, and written to the ``http_request`` access log line.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.perf_counter()
        req_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = req_id

        response = await call_next(request)
        response.headers["X-Request-Id"] = req_id

        log_event(
            logger,
            "http_request",
            requestId=req_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            latency_ms=int((time.perf_counter() - start) * 1000),
        )
        return response
