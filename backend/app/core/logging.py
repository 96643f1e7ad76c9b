import structlog
import logging
import sys
from app.core.config import settings


def _resolve_level() -> int:
    level = logging.getLevelName(settings.LOG_LEVEL.upper()) if settings.LOG_LEVEL else None
    if isinstance(level, int):
        return level
    return logging.DEBUG if settings.DEBUG else logging.INFO


def setup_logging():
    log_level = _resolve_level()
    json_output = settings.LOG_JSON or not settings.DEBUG

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )
    # SQL echo stays off unless explicitly asked for
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.SQL_ECHO else logging.WARNING
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__):
    return structlog.get_logger(module=name)
