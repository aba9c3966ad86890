"""Logging filter that stamps records with the current request id.

Referenced from ``LOGGING`` in ``config.settings``. The id comes from the
``REQUEST_ID_CTX`` ContextVar set by ``RequestIdMiddleware``; records
emitted outside a request (management commands, startup) get ``"-"`` so the
JSON formatter can always reference ``%(request_id)s``.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX


class RequestIdFilter(Filter):
    def filter(self, record: LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True
