"""Infrastructure status values and their classification.

A status is a plain frozen dataclass; the set of variants is closed:

  NotRunning           none of the required services is running
  Partial              some, but not all, required services are running
  RunningButUnhealthy  all are running, at least one fails its health probe
  Healthy              all are running and healthy
  Error                the probes themselves could not be queried
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Union


@dataclass(frozen=True)
class NotRunning:
    pass


@dataclass(frozen=True)
class Partial:
    missing: frozenset[str]


@dataclass(frozen=True)
class RunningButUnhealthy:
    unhealthy: frozenset[str]


@dataclass(frozen=True)
class Healthy:
    pass


@dataclass(frozen=True)
class Error:
    reason: str


InfrastructureStatus = Union[NotRunning, Partial, RunningButUnhealthy, Healthy, Error]

STATUS_TYPES = (NotRunning, Partial, RunningButUnhealthy, Healthy, Error)


def classify(
    required: Iterable[str],
    running: Iterable[str],
    health: Mapping[str, bool] | None = None,
) -> InfrastructureStatus:
    """Classify an observation.

    `health` is only consulted once every required service is running; a
    required service missing from it counts as unhealthy.
    """
    req = frozenset(required)
    if not req:
        raise ValueError("required set must not be empty")
    run = frozenset(running)

    if not (req & run):
        return NotRunning()
    missing = req - run
    if missing:
        return Partial(missing=missing)

    health = health or {}
    unhealthy = frozenset(name for name in req if not health.get(name, False))
    if unhealthy:
        return RunningButUnhealthy(unhealthy=unhealthy)
    return Healthy()


def status_label(status: InfrastructureStatus) -> str:
    if isinstance(status, NotRunning):
        return "not_running"
    if isinstance(status, Partial):
        return "partial"
    if isinstance(status, RunningButUnhealthy):
        return "running_but_unhealthy"
    if isinstance(status, Healthy):
        return "healthy"
    if isinstance(status, Error):
        return "error"
    raise TypeError(f"Unknown infrastructure status: {status!r}")


def status_to_dict(status: InfrastructureStatus) -> dict[str, Any]:
    return {
        "state": status_label(status),
        "missing": sorted(status.missing) if isinstance(status, Partial) else [],
        "unhealthy": sorted(status.unhealthy) if isinstance(status, RunningButUnhealthy) else [],
        "reason": status.reason if isinstance(status, Error) else None,
    }


def describe(status: InfrastructureStatus) -> str:
    """One-line summary, used in events and alerts."""
    if isinstance(status, NotRunning):
        return "Infrastructure is not running"
    if isinstance(status, Partial):
        return f"Infrastructure partially running, missing: {', '.join(sorted(status.missing))}"
    if isinstance(status, RunningButUnhealthy):
        return f"Infrastructure running but unhealthy: {', '.join(sorted(status.unhealthy))}"
    if isinstance(status, Healthy):
        return "Infrastructure is healthy"
    if isinstance(status, Error):
        return f"Infrastructure status unknown: {status.reason}"
    raise TypeError(f"Unknown infrastructure status: {status!r}")


def format_status(status: InfrastructureStatus, required: Iterable[str]) -> str:
    """Multi-line status block for terminal output."""
    req = sorted(set(required))
    missing = status.missing if isinstance(status, Partial) else frozenset()
    unhealthy = status.unhealthy if isinstance(status, RunningButUnhealthy) else frozenset()

    lines = [
        "Infrastructure status",
        f"  state:    {status_label(status)}",
        f"  summary:  {describe(status)}",
        "  services:",
    ]
    for name in req:
        if isinstance(status, (NotRunning, Error)):
            mark = "unknown" if isinstance(status, Error) else "down"
        elif name in missing:
            mark = "down"
        elif name in unhealthy:
            mark = "unhealthy"
        elif isinstance(status, Partial):
            mark = "running"
        else:
            mark = "healthy"
        lines.append(f"    - {name}: {mark}")
    return "\n".join(lines)
