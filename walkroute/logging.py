import logging
import sys
from typing import List, Optional

import structlog

from walkroute.core.config import settings

# Loggers whose records are forwarded to the root handler unchanged
FORWARDED_LOGGERS = ["uvicorn", "uvicorn.error", "uvicorn.access"]

# httpx logs every Kakao request URL at INFO, query text and coordinates included
QUIET_LOGGERS = ["httpx", "httpcore"]


def _processors(json_logs: bool) -> List:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.FILENAME,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
    ]
    if json_logs:
        return processors + [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return processors + [structlog.dev.ConsoleRenderer()]


def configure_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Send structlog events (session and request logs) and stdlib records
    (lookup client, debouncer, uvicorn) through one pipeline.

    `level` defaults to `settings.LOG_LEVEL`. `json_logs` defaults to JSON
    lines outside development and console output while developing.
    """
    if json_logs is None:
        json_logs = settings.ENV.lower() != "development"
    level_name = (level or settings.LOG_LEVEL).upper()
    root_level = getattr(logging, level_name, logging.INFO)

    structlog.configure(
        processors=_processors(json_logs),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=root_level)
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(root_level)

    for name in FORWARDED_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers = []
        logger.propagate = True

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))
