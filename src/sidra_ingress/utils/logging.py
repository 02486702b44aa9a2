# ABOUTME: Structured logging with run IDs for sidra-ingress-sync
# ABOUTME: Implements the dispatch audit trail and structlog configuration

"""
Structured logging with run IDs and a dispatch audit trail.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module provides three observability features:

1. STRUCTURED LOGGING: Log events are key/value dictionaries rendered either
   as colored console text or as JSON lines.

2. RUN IDs: Every invocation of the job gets a short identifier attached to
   every log event, so the output of one run can be filtered out of a shared
   log stream:

       {"run_id": "a1b2c3d4", "event": "Nginx config sent", "ingress": "shop"}

3. AUDIT LOGGING: One entry per dispatched config (CREATE or DELETE) with its
   outcome, written to a JSON-lines file or to the structured log.

=============================================================================
PER-INGRESS CONTEXT
=============================================================================

The pipeline binds `namespace` and `ingress` with
structlog.contextvars.bound_contextvars while one ingress is processed.
The merge_contextvars processor copies them into every event emitted by
the renderer or the HTTP client in that window, without passing them
through each call.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from pathlib import Path

# =============================================================================
# RUN ID CONTEXT VARIABLE
# =============================================================================

run_id: ContextVar[str] = ContextVar("run_id", default="")


def get_run_id() -> str:
    """
    Get current run ID or generate a new one.

    A fresh ID is the first 8 hex characters of a UUID4 and is stored in the
    context, so later calls in the same run return the same value.

    Returns:
        8-character run ID string.

    Example:
        >>> get_run_id()
        'a3f8c2d1'
    """
    rid = run_id.get()
    if not rid:
        rid = str(uuid.uuid4())[:8]
        run_id.set(rid)
    return rid


def set_run_id(rid: str) -> None:
    """
    Set run ID for current context.

    Passing an empty string makes the next get_run_id() call generate a new
    ID; the pipeline does this at the start of every run.
    """
    run_id.set(rid)


def add_run_id(
    logger: structlog.types.WrappedLogger,  # noqa: ARG001 - Required by structlog Processor API
    method_name: str,  # noqa: ARG001 - Required by structlog Processor API
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """
    Structlog processor adding the run ID to log events.

    Args:
        logger: The structlog wrapped logger (unused but required by API)
        method_name: The logging method name (unused but required by API)
        event_dict: Dictionary containing log event data to enrich

    Returns:
        The event_dict with "run_id" field added.
    """
    event_dict["run_id"] = get_run_id()
    return event_dict


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """
    Configure structured logging.

    Call once at startup. The processor pipeline is:

    1. merge_contextvars: Adds bound context (namespace, ingress)
    2. add_log_level: Adds "level" field
    3. TimeStamper: Adds ISO-format timestamp
    4. add_run_id: Adds the run ID
    5. Renderer: JSON or colored console text

    Args:
        level: Logging level name ("DEBUG", "INFO", "WARNING", ...).
               Unknown names fall back to INFO.
        json_output: If True, output JSON lines; otherwise console text.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_run_id,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# =============================================================================
# AUDIT LOGGER
# =============================================================================


class AuditLogger:
    """
    Audit trail of every config handed to the config applier.

    Every entry records:
    - timestamp: When it happened (UTC ISO 8601)
    - run_id: Which invocation of the job produced it
    - event: "CREATE" or "DELETE"
    - target: "<namespace>/<ingress>"
    - result: "sent", "rejected", "error" or "dry_run"
    - details: HTTP status, error message, etc.

    TWO OUTPUT MODES:
    -----------------
    1. FILE: Append one JSON object per line to `log_path`
    2. STDOUT: Emit an "audit" event through structlog

    EXAMPLE ENTRIES:
    ----------------
    {"timestamp": "2026-01-15T10:30:00+00:00", "run_id": "abc12345",
     "event": "CREATE", "target": "store/shop", "result": "sent",
     "details": {"status": 200}}

    {"timestamp": "2026-01-15T10:30:01+00:00", "run_id": "abc12345",
     "event": "DELETE", "target": "store/old-shop", "result": "error",
     "details": {"error": "Connection refused"}}
    """

    def __init__(self, log_path: Path | None = None) -> None:
        """
        Initialize audit logger.

        Args:
            log_path: Path to audit log file, or None for stdout.
                     Entries are appended. A write failure is logged and
                     the entry is dropped.
        """
        self._log_path = log_path
        self._logger = structlog.get_logger("audit")

    def log(
        self,
        event: str,
        target: str,
        result: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Record one dispatch outcome.

        All specialized methods (log_sent, log_error, ...) delegate here.

        Args:
            event: "CREATE" or "DELETE"
            target: "<namespace>/<ingress>"
            result: Outcome name
            details: Additional context, omitted from the entry when empty
        """
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "run_id": get_run_id(),
            "event": event,
            "target": target,
            "result": result,
        }
        if details:
            entry["details"] = details

        if self._log_path:
            try:
                with self._log_path.open("a") as f:
                    f.write(json.dumps(entry) + "\n")
            except OSError as e:
                self._logger.error(
                    "Error writing audit entry",
                    path=str(self._log_path),
                    type_event=event,
                    target=target,
                    result=result,
                    error=str(e),
                )
        else:
            # structlog reserves "event" for the message itself
            self._logger.info(
                "audit",
                type_event=event,
                target=target,
                result=result,
                details=details,
            )

    def log_sent(self, event: str, target: str, status: int) -> None:
        """Record a config accepted with a 2xx status."""
        self.log(event, target, "sent", {"status": status})

    def log_rejected(self, event: str, target: str, status: int) -> None:
        """Record a config that reached the applier but got a non-2xx status."""
        self.log(event, target, "rejected", {"status": status})

    def log_error(self, event: str, target: str, error: str) -> None:
        """Record a config that could not be rendered or delivered."""
        self.log(event, target, "error", {"error": error})

    def log_dry_run(self, event: str, target: str) -> None:
        """Record a config that was rendered but deliberately not sent."""
        self.log(event, target, "dry_run")
