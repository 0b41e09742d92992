"""
Structured logging setup and the logging helpers shared by the
generation pipeline and the HTTP middleware
"""
import logging
import sys
import time
from functools import wraps

import structlog

from studyguide.config import LOG_LEVEL

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("sqlalchemy", "httpx", "httpcore", "openai")


def configure_logging(level: str = LOG_LEVEL):
    """JSON lines on stdout, rendered by structlog through stdlib logging"""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _report_fields(result) -> dict:
    # Orchestrator results carry a GenerationReport
    report = getattr(result, "report", None)
    if report is None:
        return {}
    return {
        "mode": report.mode,
        "fallback_cells": len(report.fallback_cells),
        "parse_failures": len(report.parse_failures),
    }


def log_performance(stage: str):
    """Log duration and outcome of a generation stage"""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = structlog.get_logger("performance")
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    "stage_failed",
                    stage=stage,
                    duration_seconds=round(time.perf_counter() - started, 4),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise
            logger.info(
                "stage_completed",
                stage=stage,
                duration_seconds=round(time.perf_counter() - started, 4),
                **_report_fields(result),
            )
            return result
        return wrapper
    return decorator


def log_api_request(request, response=None, process_time=None):
    """Log the start of a request, or its completion when a response is given"""
    logger = structlog.get_logger("api")
    fields = {
        "method": request.method,
        "path": request.url.path,
        "client_ip": request.client.host if request.client else "unknown",
    }
    if response is None:
        logger.info("api_request_started", **fields)
        return
    fields["status_code"] = response.status_code
    fields["duration_seconds"] = process_time
    if response.status_code >= 500:
        logger.error("api_request_completed", **fields)
    else:
        logger.info("api_request_completed", **fields)
