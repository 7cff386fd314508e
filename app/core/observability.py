"""Process-scoped observability handle shared by the scheduling components."""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import structlog
from prometheus_client import REGISTRY, CollectorRegistry, Counter


class SchedulingMetrics:
    """Prometheus counters for appointment lifecycle events."""

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.recurring_created = Counter(
            "recurring_appointments_created_total",
            "Total number of recurring appointment instances created",
            labelnames=["type"],
            registry=registry,
        )
        self.conflicts = Counter(
            "appointment_conflicts_total",
            "Total number of rejected scheduling conflicts",
            registry=registry,
        )
        self.dependency_failures = Counter(
            "dependency_failures_total",
            "Collaborator calls that failed after all retries",
            labelnames=["target"],
            registry=registry,
        )
        self.notifications_failed = Counter(
            "notifications_failed_total",
            "Notifications that could not be delivered",
            labelnames=["type"],
            registry=registry,
        )


@dataclass
class Observability:
    """Logger and metrics handed to each component at construction."""

    logger: Any
    metrics: SchedulingMetrics = field(default_factory=lambda: SchedulingMetrics(CollectorRegistry()))


@lru_cache
def get_observability() -> Observability:
    """Get the process-wide observability handle."""
    return Observability(
        logger=structlog.get_logger("appointments"),
        metrics=SchedulingMetrics(),
    )
