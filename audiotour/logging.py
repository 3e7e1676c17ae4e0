import logging
import sys
from typing import Optional

import structlog

from audiotour.core.config import Settings, settings as default_settings

def configure_logging(app_settings: Optional[Settings] = None):
    """
    Route structlog and standard library logging through one pipeline:
    console output while developing, one JSON object per line elsewhere.

    Provider clients and pipeline stages log structured events
    (``provider_call_failed``, ``landmark_scored``, ``stage_completed``...);
    the request middleware binds ``request_id`` so every event of one tour
    request can be correlated.
    """
    app_settings = app_settings or default_settings
    is_local = app_settings.ENV.lower() == "development"

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
    ]

    if is_local:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, app_settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    # httpx logs every request at INFO; provider events already cover that.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    # Let uvicorn's loggers propagate to the root logger configured above.
    for _log in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logger = logging.getLogger(_log)
        logger.handlers = []
        logger.propagate = True
