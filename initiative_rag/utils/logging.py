"""structlog configuration for initiative-rag.

Every event goes through one processor chain and ends in either a
ConsoleRenderer (development) or a JSONRenderer (``APP_ENV=production`` or
``json_output=True``).  The stdlib root logger is routed through the same
chain, so uvicorn, httpx, openai and chromadb records share the format.

Request-scoped fields (``request_id``, ``user_id``) live in structlog
contextvars; the API middleware binds them on entry and clears them on
exit.
"""

import logging
import os
import sys

import structlog

# Libraries that log every HTTP round trip or telemetry ping at INFO.
_CHATTY_LOGGERS = ("httpx", "httpcore", "openai", "chromadb", "urllib3")


def _processor_chain() -> list[structlog.types.Processor]:
    # contextvars first so request bindings appear on every event
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def _renderer(use_json: bool) -> structlog.types.Processor:
    if use_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def _route_stdlib(level: str, chain: list, renderer: structlog.types.Processor) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *chain,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))


def configure_logging(log_level: str = "INFO", json_output: bool = False) -> structlog.BoundLogger:
    """Configure structlog and the stdlib root logger once per process.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL.
        json_output: Force JSON lines even outside production.

    Returns:
        The root structlog logger.
    """
    level = log_level.upper()
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"
    chain = _processor_chain()
    renderer = _renderer(use_json)

    structlog.configure(
        processors=[*chain, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _route_stdlib(level, chain, renderer)
    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a logger carrying ``logger_name=name``, configuring defaults if needed."""
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(logger_name=name)


def bind_request_context(**fields: object) -> None:
    """Attach *fields* to every event logged by the current task."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()
