"""Gateway middleware: request correlation and payload size limit.

``RequestIdMiddleware`` gives every incoming request an identifier. The id
is read from the ``X-Request-ID`` header when the client (or an upstream
proxy) supplies one and generated otherwise. It is stored on the request and
in the ``REQUEST_ID_CTX`` context variable, so log records and the outgoing
payment service calls can carry it without passing it around, and it is
echoed on the response. One access line is logged per request.

``ApiSizeLimitMiddleware`` rejects ``/api/`` requests whose declared body is
larger than ``API_MAX_BYTES`` with HTTP 413.
"""

import contextvars
import logging
import os
import time
import uuid

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
MAX_API_BYTES = int(os.getenv("API_MAX_BYTES", str(64 * 1024)))

logger = logging.getLogger("gateway")


class RequestIdMiddleware(MiddlewareMixin):
    """Django middleware that sets and returns a per-request identifier.

    Attributes:
        HEADER (str): Incoming header name in ``request.META`` casing.
        RESPONSE_HEADER (str): Header added to outgoing responses.
    """

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        rid = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = rid
        request._started_at = time.monotonic()
        REQUEST_ID_CTX.set(rid)

    def process_response(self, request, response):
        """Add the request id header and log the handled request.

        Falls back to the ContextVar when the request never went through
        ``process_request`` (for example when an earlier middleware answered).
        """
        rid = getattr(request, "request_id", REQUEST_ID_CTX.get())
        response[self.RESPONSE_HEADER] = rid
        started = getattr(request, "_started_at", None)
        logger.info(
            "request handled",
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": round((time.monotonic() - started) * 1000, 2) if started else None,
            },
        )
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    def process_request(self, request):
        if request.path.startswith("/api/"):
            clen = request.META.get("CONTENT_LENGTH")
            if clen and clen.isdigit() and int(clen) > MAX_API_BYTES:
                return JsonResponse({"detail": "PAYLOAD_TOO_LARGE"}, status=413)
