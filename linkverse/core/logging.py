"""structlog setup for the API process.

Events pass through ``redact_secrets`` before rendering so session tokens,
passwords and provider keys never reach the console or the log file. Request
handlers bind ``user_id`` with ``structlog.contextvars`` and every event
logged while serving that request carries it.
"""

import sys
import structlog
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional
from linkverse.core.config import Settings

REDACTED = "[redacted]"

SECRET_KEYS = frozenset([
    "access_token",
    "refresh_token",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "anon_key",
])


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return lowered in SECRET_KEYS or lowered.endswith("_api_key")


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED if _is_secret(str(k)) else _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(item) for item in value)
    return value


def redact_secrets(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor masking credential-bearing keys, nested ones included."""
    for key in list(event_dict):
        if key == "event":
            continue
        if _is_secret(key):
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _scrub(event_dict[key])
    return event_dict


def build_processors(log_format: str) -> List[Any]:
    """Processor chain for ``console`` or ``json`` output."""
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.insert(0, structlog.processors.TimeStamper(fmt="iso", utc=True))
        processors.insert(1, structlog.stdlib.add_logger_name)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.insert(0, structlog.processors.TimeStamper(fmt="%H:%M:%S"))
        processors.append(structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback
        ))
    return processors


def configure_logging(settings: Settings) -> None:
    """Route stdlib logging to stdout (and the optional log file) and set up structlog."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setLevel(level)
    logging.basicConfig(level=level, handlers=handlers, format="%(message)s", force=True)

    # httpx logs every request URL, user filters included, at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=build_processors(settings.log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


def log_execution_time(logger: structlog.BoundLogger, operation: str,
                       start_time: float, end_time: float, **kwargs) -> None:
    """Timing event for a gateway or model call."""
    logger.info(
        "Operation completed",
        operation=operation,
        execution_time_seconds=round(end_time - start_time, 4),
        **kwargs
    )


def log_api_call(logger: structlog.BoundLogger, provider: str, model: str,
                 operation: str, success: bool, **kwargs) -> None:
    """Outcome of a chat model call, tagged with provider and model."""
    event = "Model call completed" if success else "Model call failed"
    log = logger.info if success else logger.warning
    log(event, provider=provider, model=model, operation=operation, success=success, **kwargs)


def log_cache_operation(logger: structlog.BoundLogger, operation: str,
                        kind: str, hit: Optional[bool] = None, **kwargs) -> None:
    """Debug event for a shared cache read, refresh or invalidation."""
    if hit is not None:
        kwargs["cache_hit"] = hit
    logger.debug("Cache operation", operation=operation, cache_kind=kind, **kwargs)
