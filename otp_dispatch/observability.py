"""
Structured Logging
==================
structlog configuration for services embedding the dispatch pipeline.

Usage:
    from otp_dispatch.observability import configure_logging

    configure_logging(service_name="otp-service")
"""

import logging
import os
import sys
from typing import Any, Dict, Mapping, Optional

import structlog

from .config import _env_bool

# Event keys whose values must never reach a log sink.
SECRET_KEYS = frozenset({
    "password",
    "encrypted_password",
    "secure_key",
    "key",
    "signing_hash",
    "authorization",
    "proxy_authorization",
})

REDACTED = "[REDACTED]"


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor replacing credential values with a placeholder."""
    for key in list(event_dict):
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    service_name: str = "otp-service",
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        service_name: Added to every event as ``service``
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to ``LOG_LEVEL``, then INFO.
        json_output: JSON lines when True, console rendering when False.
            Defaults to ``LOG_JSON``, then True.
        environ: Mapping read instead of ``os.environ``
    """
    env = os.environ if environ is None else environ
    if level is None:
        level = env.get("LOG_LEVEL", "").strip() or "INFO"
    if json_output is None:
        json_output = _env_bool(env, "LOG_JSON", True)

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level, force=True)

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)

    structlog.get_logger(__name__).info(
        "logging.configured",
        log_level=logging.getLevelName(log_level),
        json_output=json_output,
    )


def bound_correlation(**ids: str):
    """Bind correlation ids to every event logged inside the ``with`` block."""
    return structlog.contextvars.bound_contextvars(**ids)
