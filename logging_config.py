# logging_config.py
from __future__ import annotations

import logging
import sys

from request_context import get_request_id

class RequestIdFilter(logging.Filter):
    """Inject the current request_id if not provided in log 'extra'."""
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id()
        return True

APP_LOGGERS = ("app", "llm", "travel", "photos", "auth", "routing", "security")

def setup_logging(level: int | str = logging.INFO) -> None:
    root = logging.getLogger()
    root.setLevel(level)

    # Ensure there is a stdout handler; reuse existing if present
    handler = None
    for h in root.handlers:
        if isinstance(h, logging.StreamHandler):
            handler = h
            break

    fmt = "%(asctime)s %(levelname)s %(name)s [%(process)d] [rid=%(request_id)s] %(message)s"

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(RequestIdFilter())
        root.addHandler(handler)
    else:
        handler.setFormatter(logging.Formatter(fmt))
        has_filter = any(isinstance(f, RequestIdFilter) for f in getattr(handler, "filters", []))
        if not has_filter:
            handler.addFilter(RequestIdFilter())

    for name in APP_LOGGERS:
        lg = logging.getLogger(name)
        lg.setLevel(level)
        lg.propagate = True

    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    # httpx logs every outbound request URL, which carries API keys for Places/Unsplash
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.INFO)
