"""Per-request structured logging for ASGI services.

One debug record when a request arrives, one summary record when it completes,
with the summary's level picked from the final status code.
"""

from reqlog.config import InterceptorConfig
from reqlog.context import get_request_id, record_error
from reqlog.middleware import RequestLogMiddleware, install_request_logging
from reqlog.severity import Severity, severity_for_status

__all__ = [
    "InterceptorConfig",
    "RequestLogMiddleware",
    "Severity",
    "get_request_id",
    "install_request_logging",
    "record_error",
    "severity_for_status",
]
