"""
Structured logging configuration using structlog.

Usage:
    from apps.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("company_provisioned", company_id="42", slug="acme")

Event names are snake_case and prefixed by the subsystem that emits them
(``billing_``, ``team_``, ``auth_``). Request-scoped fields are bound as
context variables by the auth middleware:
    - usr.id: Authenticated user
    - company.id: Company the request operates in
    - mode: Execution mode ("platform" or "company")
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor


def _stringify_ids(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Render identifier fields as strings.

    Keeps ``company.id`` and ``usr.id`` consistently typed regardless of
    whether callers pass model pks or Stripe/Stytch ids.
    """
    for key in ("usr.id", "company.id", "company_id", "customer_id"):
        if key in event_dict and event_dict[key] is not None:
            event_dict[key] = str(event_dict[key])
    return event_dict


def _convert_duration_to_nanoseconds(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Convert duration_ms to duration (nanoseconds)."""
    if "duration_ms" in event_dict:
        duration_ms = event_dict.pop("duration_ms")
        event_dict["duration"] = int(duration_ms * 1_000_000)
    return event_dict


def configure_logging(json_format: bool = True, log_level: str = "INFO") -> None:
    """
    Configure structlog for the application.

    Uses stdlib integration so Django and third-party loggers share the
    same renderer.

    Args:
        json_format: If True, output JSON (production). If False, pretty console output (development).
        log_level: Minimum log level to output.
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _stringify_ids,
        _convert_duration_to_nanoseconds,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    return structlog.get_logger(name)


def bind_contextvars(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current request/task context.

    Usage:
        bind_contextvars(**{"usr.id": str(user.id), "company.id": str(company.id)})
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_contextvars() -> None:
    """Clear all bound context variables at the end of a request."""
    structlog.contextvars.clear_contextvars()
