"""In-memory cache of Deployment objects mirrored from the cluster."""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from kubernetes import client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectRef:
    """Reference to a namespaced object, used as the work queue item."""
    namespace: str
    name: str

    @classmethod
    def from_object(cls, obj) -> "ObjectRef":
        """Create an ObjectRef from a Kubernetes object."""
        return cls(namespace=obj.metadata.namespace, name=obj.metadata.name)

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class DeploymentStore:
    """Thread-safe local mirror of Deployment objects."""

    def __init__(self):
        """Initialize the store."""
        self._deployments: Dict[ObjectRef, client.V1Deployment] = {}
        self._lock = threading.RLock()

    def add_or_update(self, deployment: client.V1Deployment) -> bool:
        """
        Add or update a deployment in the store.

        Args:
            deployment: The Deployment object from the Kubernetes API

        Returns:
            True if the deployment was not in the store before
        """
        ref = ObjectRef.from_object(deployment)

        with self._lock:
            is_new = ref not in self._deployments
            self._deployments[ref] = deployment

        if is_new:
            logger.debug(f"Cached deployment: {ref}")
        return is_new

    def remove(self, ref: ObjectRef) -> Optional[client.V1Deployment]:
        """
        Remove a deployment from the store.

        Returns:
            The removed Deployment or None
        """
        with self._lock:
            deployment = self._deployments.pop(ref, None)

        if deployment is not None:
            logger.debug(f"Removed deployment from cache: {ref}")
        return deployment

    def get(self, ref: ObjectRef) -> Optional[client.V1Deployment]:
        with self._lock:
            return self._deployments.get(ref)

    def replace(self, deployments: Iterable[client.V1Deployment]) -> List[client.V1Deployment]:
        """
        Replace the store contents with a fresh listing.

        Args:
            deployments: Every deployment currently in the cluster

        Returns:
            The deployments that were not in the store before
        """
        fresh = {ObjectRef.from_object(d): d for d in deployments}

        with self._lock:
            added = [d for ref, d in fresh.items() if ref not in self._deployments]
            self._deployments = fresh

        return added

    def __len__(self) -> int:
        with self._lock:
            return len(self._deployments)
