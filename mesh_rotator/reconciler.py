"""Reconciliation logic for the Mesh Deployment Rotator."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from kubernetes import client

from .cache import DeploymentStore, ObjectRef
from .config import ControllerConfig
from .templates import build_replacement_deployment
from .utils import object_age, utc_now

logger = logging.getLogger(__name__)

# Outcomes of reconciling one queue item
DEFERRED = "deferred"
ACTED = "acted"
GONE = "gone"


class DeploymentReconciler:
    """Rotates deployments that are older than the configured interval."""

    def __init__(
        self,
        settings: ControllerConfig,
        queue,
        store: DeploymentStore,
        apps_api: Optional[client.AppsV1Api] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize the reconciler.

        Args:
            settings: Controller configuration holding the age threshold
            queue: Rate-limiting work queue of ObjectRefs
            store: Local cache used to look up queued deployments
            apps_api: Client used to delete and create deployments
            clock: Returns the current time (timezone aware)
        """
        self.settings = settings
        self.queue = queue
        self.store = store
        self.apps_api = apps_api or client.AppsV1Api()
        self.clock = clock

    def worker(self) -> None:
        """Process queue items until the queue shuts down."""
        while self.process_item():
            pass

    def process_item(self) -> bool:
        """
        Take one item off the queue and reconcile it.

        Returns:
            False once the queue is shutting down, True otherwise
        """
        ref, shutdown = self.queue.get()
        if shutdown:
            logger.info("Work queue is shutting down, stopping worker")
            return False

        try:
            self.reconcile(ref)
        except Exception:
            logger.exception(f"Unexpected error reconciling deployment {ref}, retrying later")
            self.queue.done(ref)
            self.queue.add_rate_limited(ref)

        return True

    def reconcile(self, ref: ObjectRef) -> str:
        """
        Decide what to do with a queued deployment and do it.

        Args:
            ref: Reference taken from the work queue

        Returns:
            DEFERRED, ACTED or GONE
        """
        deployment = self.store.get(ref)
        if deployment is None:
            logger.info(f"Deployment {ref} is no longer in the cache, dropping it")
            self._finish(ref)
            return GONE

        age = self.deployment_age(deployment)
        if age > self.settings.age_threshold:
            logger.info(f"Restarting Deployment {ref} (age {age}, threshold {self.settings.age_threshold})")
            self.rotate(ref)
            self._finish(ref)
            return ACTED

        logger.debug(f"Deployment {ref} is {age} old, checking again later")
        self.queue.done(ref)
        self.queue.add_after(ref, self.settings.recheck_delay)
        return DEFERRED

    def deployment_age(self, deployment: client.V1Deployment) -> timedelta:
        return object_age(deployment.metadata.creation_timestamp, self.clock())

    def rotate(self, ref: ObjectRef) -> bool:
        """
        Delete a deployment and create the replacement in its namespace.

        Returns:
            True if both the deletion and the creation succeeded
        """
        try:
            self.apps_api.delete_namespaced_deployment(
                name=ref.name,
                namespace=ref.namespace
            )
            logger.info(f"Deleted deployment {ref}")
        except Exception as e:
            logger.error(f"Error deleting deployment {ref}: {e}")
            return False

        return self.recreate(ref.namespace)

    def recreate(self, namespace: str) -> bool:
        """
        Create the replacement deployment in a namespace.

        A failed creation is logged and not retried; the deleted deployment stays gone.
        """
        body = build_replacement_deployment(namespace)
        try:
            self.apps_api.create_namespaced_deployment(
                namespace=namespace,
                body=body
            )
            logger.info(f"Created deployment {namespace}/{body.metadata.name}")
            return True
        except Exception as e:
            logger.error(f"Error creating deployment in {namespace}: {e}")
            return False

    def _finish(self, ref: ObjectRef) -> None:
        """Drop an item from the queue for good."""
        self.queue.done(ref)
        self.queue.forget(ref)
