"""Structured logging via structlog.

Configures structlog once at host start-up. All subsequent calls to
`structlog.get_logger()` (including the audit log mirror in
`wisdom.agent.audit`) use this configuration.

Renderer selection:
  debug=True  — `ConsoleRenderer` with colours for local development.
  debug=False — `JSONRenderer` for machine-parseable logs.

ContextVar injection:
  The `run_id` and `iteration` fields are injected into every log line from
  context vars bound by the agent orchestrator. Any logger called while a
  run is in progress automatically carries them without the caller having
  to pass them.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional

import structlog

_run_id_var: ContextVar[str] = ContextVar("run_id", default="")
_iteration_var: ContextVar[Optional[int]] = ContextVar("iteration", default=None)


def get_run_id() -> str:
    """Return the current run ID, or empty string if not inside a run."""
    return _run_id_var.get()


def get_iteration() -> Optional[int]:
    return _iteration_var.get()


def bind_run_id(run_id: str) -> None:
    _run_id_var.set(run_id)


def bind_iteration(iteration: Optional[int]) -> None:
    _iteration_var.set(iteration)


def clear_run_context() -> None:
    _run_id_var.set("")
    _iteration_var.set(None)


def _inject_context_vars(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: inject run_id and iteration from ContextVars."""
    run_id = get_run_id()
    iteration = get_iteration()
    if run_id:
        event_dict.setdefault("run_id", run_id)
    if iteration is not None:
        event_dict.setdefault("iteration", iteration)
    return event_dict


def configure_structlog(debug: bool = True) -> None:
    """Configure structlog for the process lifetime.

    Call once from the host before starting an agent. Calling multiple
    times is safe — structlog is idempotent.
    """
    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if debug else logging.INFO
        ),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging so the collaborator modules (build runner,
    # httpx, etc.) also reach stdout.
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )
