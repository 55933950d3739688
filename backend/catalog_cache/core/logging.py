"""
Structured logging configuration for the cache layer.

All logs include:
- timestamp (ISO 8601 format)
- level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- service (service name identifier)
- run_id (while a scheduled reconciliation pass is running)
"""
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional, Any, Dict

import structlog
from structlog.types import Processor

# Context variable for the reconciliation run currently executing
run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

SERVICE_NAME = "catalog_cache"


def add_run_context(
    logger: structlog.BoundLogger,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Add run context (run_id, service) to log entries.
    """
    run_id = run_id_var.get()
    if run_id:
        event_dict["run_id"] = run_id

    event_dict["service"] = SERVICE_NAME

    if "timestamp" not in event_dict:
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()

    return event_dict


def configure_logging(
    log_level: str = "INFO",
    service_name: Optional[str] = None,
    json_output: bool = True
) -> None:
    """
    Configure structured logging for the process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        service_name: Service name identifier (defaults to SERVICE_NAME)
        json_output: JSON lines when True, console rendering otherwise
    """
    global SERVICE_NAME
    if service_name:
        SERVICE_NAME = service_name

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_run_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
    """
    return structlog.get_logger(name)


def set_run_id(run_id: Optional[str]) -> None:
    """Set the reconciliation run ID for the current context (None clears it)."""
    run_id_var.set(run_id)


def get_run_id() -> Optional[str]:
    """Get the reconciliation run ID of the current context."""
    return run_id_var.get()


def generate_run_id() -> str:
    """Generate a new unique run ID (UUID4 string)."""
    return str(uuid.uuid4())
