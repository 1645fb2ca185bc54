"""
Logging configuration with Wide Events / Canonical Log Lines pattern.

Every job the worker processes produces one comprehensive event:
- Built up while the job runs (variables, steps executed, fallback used, ...)
- Emitted once when the job reaches a terminal state
- Every ordinary log line emitted in between carries the job_id

References:
- https://charity.wtf/2019/02/05/logs-vs-structured-events/
- Stripe's "canonical log lines" pattern
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import Processor

# Context variables for the job-scoped wide event
_job_event: ContextVar[dict[str, Any] | None] = ContextVar("job_event", default=None)
_job_start: ContextVar[float] = ContextVar("job_start", default=0.0)


def get_job_event() -> dict[str, Any]:
    """Get the current job's wide event for enrichment."""
    return _job_event.get() or {}


def enrich_event(**kwargs: Any) -> None:
    """
    Add fields to the current job's wide event.

        from datahive_worker.core.logging import enrich_event

        enrich_event(steps_executed=3, **{"pipeline.fallback": True})

    Dotted keys create nested objects. Outside of a job this is a no-op.
    """
    event = _job_event.get()
    if event is None:
        return
    for key, value in kwargs.items():
        if "." in key:
            parts = key.split(".")
            target = event
            for part in parts[:-1]:
                if part not in target:
                    target[part] = {}
                target = target[part]
            target[parts[-1]] = value
        else:
            event[key] = value


def init_job_event(
    job_id: str,
    job_type: str | None = None,
    version: str = "dev",
    environment: str = "development",
) -> dict[str, Any]:
    """Initialize a new wide event for a job, tagged with the running service."""
    event = {
        "job_id": job_id,
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S.000Z", time.gmtime()),
        "job": {
            "type": job_type,
        },
        "service": {
            "name": "datahive-worker",
            "version": version,
            "environment": environment,
        },
    }

    _job_event.set(event)
    _job_start.set(time.time())
    return event


def finalize_job_event(status: str, error: Exception | None = None) -> dict[str, Any]:
    """Finalize and return the wide event for emission, then clear it."""
    event = _job_event.get() or {}
    start_time = _job_start.get()

    event["status"] = status
    event["duration_ms"] = int((time.time() - start_time) * 1000)
    event["outcome"] = "error" if error else "success"

    if error:
        event["error"] = {
            "type": type(error).__name__,
            "message": str(error)[:500],
        }
        if hasattr(error, "kind"):
            event["error"]["kind"] = error.kind

    _job_event.set(None)
    return event


def add_job_id(logger: Any, method_name: str, event_dict: dict) -> dict:
    """Processor to add job_id to all log entries emitted during a job."""
    current_event = _job_event.get()
    if current_event and "job_id" in current_event:
        event_dict.setdefault("job_id", current_event["job_id"])
    return event_dict


def configure_logging(json_logs: bool = True, log_level: str = "INFO") -> None:
    """
    Configure structlog for the worker.

    Args:
        json_logs: If True, output JSON format (for production).
                   If False, output colored console format (for development).
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR).
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        add_job_id,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Libraries (httpx, playwright) log through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )


def emit_job_event(event: dict[str, Any]) -> None:
    """
    Emit the canonical log line for a job.

    This is the single, comprehensive record of what happened.
    """
    logger = structlog.get_logger("job_event")

    if event.get("outcome") == "error":
        logger.error("job_finished", **event)
    else:
        logger.info("job_finished", **event)
