"""Configuration settings for the Mesh Deployment Rotator."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import FrozenSet, Iterable

# Opt-in label, its value must parse as boolean true
MESH_LABEL = "mesh"

# Default age (minutes) after which a deployment is rotated
DEFAULT_INTERVAL_MINUTES = 10

# Watch settings
WATCH_TIMEOUT_SECONDS = 300
WATCH_RETRY_SECONDS = 5
CACHE_SYNC_TIMEOUT_SECONDS = 60
CACHE_SYNC_POLL_SECONDS = 0.1

# Worker settings
WORKER_PERIOD_SECONDS = 1
WORKER_JOIN_TIMEOUT_SECONDS = 5

# Delay before a deployment that is not old enough yet is looked at again.
# 0 re-adds it to the queue immediately.
RECHECK_DELAY_SECONDS = 1.0

# Rate limiter settings (per-item exponential backoff + overall token bucket)
BACKOFF_BASE_DELAY_SECONDS = 0.005
BACKOFF_MAX_DELAY_SECONDS = 1000.0
BUCKET_QPS = 10
BUCKET_BURST = 100

# Replacement deployment template
REPLACEMENT_NAME = "nginx-deployment"
REPLACEMENT_REPLICAS = 3
REPLACEMENT_LABELS = {"app": "nginx", MESH_LABEL: "true"}
REPLACEMENT_CONTAINER_NAME = "nginx"
REPLACEMENT_IMAGE = "nginx:1.14.2"
REPLACEMENT_PORT_NAME = "http"
REPLACEMENT_PORT = 80


@dataclass(frozen=True)
class ControllerConfig:
    """
    Settings shared by the admission filter and the reconciler.

    Args:
        interval_minutes: Age in minutes after which a deployment is rotated
        namespaces: Namespaces allowed for rotation (empty for all namespaces)
        recheck_delay: Seconds to wait before re-checking a young deployment
    """
    interval_minutes: int = DEFAULT_INTERVAL_MINUTES
    namespaces: FrozenSet[str] = field(default_factory=frozenset)
    recheck_delay: float = RECHECK_DELAY_SECONDS

    def __post_init__(self):
        if self.interval_minutes < 0:
            raise ValueError(f"interval must not be negative, got {self.interval_minutes}")
        if self.recheck_delay < 0:
            raise ValueError(f"recheck delay must not be negative, got {self.recheck_delay}")
        # Accept any iterable of names, store it as a frozenset
        namespaces = frozenset(self.namespaces)
        if any(not ns for ns in namespaces):
            raise ValueError("namespace names must not be empty")
        object.__setattr__(self, "namespaces", namespaces)

    @classmethod
    def from_args(cls, interval: int, namespaces: Iterable[str]) -> "ControllerConfig":
        """Build a config from command line values."""
        return cls(interval_minutes=interval, namespaces=frozenset(namespaces))

    @property
    def age_threshold(self) -> timedelta:
        """Age beyond which a deployment is deleted and recreated."""
        return timedelta(minutes=self.interval_minutes)

    def allows_namespace(self, namespace: str) -> bool:
        """Check a namespace against the allow-list (empty allows all)."""
        return not self.namespaces or namespace in self.namespaces
