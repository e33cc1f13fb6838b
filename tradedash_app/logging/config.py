"""
Centralized logging configuration for the TradeDash engine.

Every module logs through structlog. ``configure_logging`` routes structlog
through the standard library so log levels and handlers can be controlled
in one place; until it is called, structlog's development defaults apply.

Two subsystem loggers exist:
- price feed (quote rejections, dropped responses, fetch failures)
- trade lifecycle (audit trail of every trade status transition)
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger, Processor


def _shared_processors(include_timestamp: bool, include_caller: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.MODULE,
                        structlog.processors.CallsiteParameter.LINENO]
        ))
    return processors


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the whole process.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR)
        format_json: Render one JSON object per line instead of console output
        include_timestamp: Add an ISO-8601 UTC ``timestamp`` key
        include_caller: Add the calling module and line number
        extra_processors: Processors inserted before the renderer
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(level=log_level, stream=sys.stdout, format="%(message)s", force=True)

    processors = _shared_processors(include_timestamp, include_caller)
    processors.extend(extra_processors or [])
    processors.append(
        structlog.processors.JSONRenderer() if format_json
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_session_context(**values: Any) -> None:
    """Attach key/values (account, selected asset) to every later log line."""
    structlog.contextvars.bind_contextvars(**values)


def clear_session_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a structlog logger.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


def get_feed_logger(name: str) -> FilteringBoundLogger:
    """Logger for price feed ingestion, filterable out of the trade audit trail."""
    return get_logger(name).bind(subsystem="price_feed")


def get_trade_logger(name: str) -> FilteringBoundLogger:
    """Logger bound with the trade audit context."""
    return get_logger(name).bind(
        subsystem="trade_lifecycle",
        audit_trail=True
    )


def log_trade_transition(
    logger: FilteringBoundLogger,
    trade_id: str,
    from_status: str,
    to_status: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a trade status transition in the audit format.

    Args:
        logger: Structlog logger instance
        trade_id: ID of the trade transitioning
        from_status: Status before the transition
        to_status: Status after the transition
        trigger: What caused it ("open", "expiry")
        context: Prices, stake and outcome details
    """
    bound_logger = logger.bind(
        trade_id=trade_id,
        from_status=from_status,
        to_status=to_status,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("trade_transition")
