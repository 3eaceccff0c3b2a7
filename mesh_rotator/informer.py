"""List/watch loop keeping a local cache of Deployments in sync with the cluster."""

import logging
import threading
import time
from typing import Callable, List, Optional

from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from .cache import DeploymentStore, ObjectRef
from .config import (
    WATCH_TIMEOUT_SECONDS,
    WATCH_RETRY_SECONDS,
    CACHE_SYNC_POLL_SECONDS,
)

logger = logging.getLogger(__name__)

AddHandler = Callable[[client.V1Deployment], None]


class ResourceVersionExpired(Exception):
    """The watch resource version is too old and the cache must be re-listed."""


class DeploymentInformer:
    """
    Mirrors Deployments across all namespaces into a DeploymentStore.

    Handlers registered with add_handler() are called once for every
    deployment the informer has not seen before, starting with every
    deployment in the initial listing.
    """

    def __init__(
        self,
        apps_api: Optional[client.AppsV1Api] = None,
        store: Optional[DeploymentStore] = None,
        watch_timeout: int = WATCH_TIMEOUT_SECONDS
    ):
        """
        Initialize the informer.

        Args:
            apps_api: Client used to list and watch deployments
            store: Cache to fill (a new one is created if omitted)
            watch_timeout: Server-side timeout of a single watch request
        """
        self.apps_api = apps_api or client.AppsV1Api()
        self.store = store if store is not None else DeploymentStore()
        self.watch_timeout = watch_timeout

        self._handlers: List[AddHandler] = []
        self._synced = threading.Event()
        self._watch: Optional[watch.Watch] = None
        self._thread: Optional[threading.Thread] = None

    def add_handler(self, on_add: AddHandler) -> None:
        """Register a callback for newly observed deployments."""
        self._handlers.append(on_add)

    def has_synced(self) -> bool:
        """True once the initial listing has been loaded into the store."""
        return self._synced.is_set()

    def start(self, stop_event: threading.Event) -> threading.Thread:
        """Run the informer in a background thread until stop_event is set."""
        self._thread = threading.Thread(
            target=self.run,
            args=(stop_event,),
            name="deployment-informer",
            daemon=True
        )
        self._thread.start()
        return self._thread

    def run(self, stop_event: threading.Event) -> None:
        """List and watch deployments in a loop until stop_event is set."""
        logger.info("Starting deployment informer...")
        resource_version = None

        while not stop_event.is_set():
            try:
                if resource_version is None:
                    resource_version = self.list_deployments()
                resource_version = self.watch_deployments(resource_version, stop_event)
            except ResourceVersionExpired:
                logger.info("Watch resource version expired, re-listing deployments")
                resource_version = None
            except ApiException as e:
                if e.status == 410:
                    logger.info("Watch resource version expired, re-listing deployments")
                else:
                    logger.error(f"Deployment watch error: {e}")
                    stop_event.wait(WATCH_RETRY_SECONDS)
                resource_version = None
            except Exception as e:
                logger.error(f"Unexpected error in deployment informer: {e}")
                resource_version = None
                stop_event.wait(WATCH_RETRY_SECONDS)

        logger.info("Deployment informer stopped")

    def stop(self) -> None:
        """Interrupt the current watch request."""
        if self._watch is not None:
            self._watch.stop()

    def list_deployments(self) -> str:
        """
        Load every deployment into the store.

        Returns:
            Resource version to start watching from
        """
        response = self.apps_api.list_deployment_for_all_namespaces()
        added = self.store.replace(response.items)

        if not self._synced.is_set():
            logger.info(f"Initial deployment listing loaded ({len(response.items)} deployments)")
            self._synced.set()

        for deployment in added:
            self._notify_add(deployment)

        return response.metadata.resource_version

    def watch_deployments(self, resource_version: str, stop_event: threading.Event) -> str:
        """
        Apply watch events to the store until the watch times out or stop_event is set.

        Returns:
            Resource version of the last event seen
        """
        self._watch = watch.Watch()
        stream = self._watch.stream(
            self.apps_api.list_deployment_for_all_namespaces,
            resource_version=resource_version,
            timeout_seconds=self.watch_timeout
        )

        for event in stream:
            if stop_event.is_set():
                self._watch.stop()
                break

            event_type = event["type"]
            if event_type == "ERROR":
                raw = event.get("raw_object") or {}
                if raw.get("code") == 410:
                    raise ResourceVersionExpired(raw.get("message", ""))
                logger.error(f"Deployment watch returned an error: {raw}")
                continue

            deployment = event["object"]
            self.handle_event(event_type, deployment)
            resource_version = deployment.metadata.resource_version or resource_version

        return resource_version

    def handle_event(self, event_type: str, deployment: client.V1Deployment) -> None:
        """
        Apply a single watch event to the store.

        Args:
            event_type: ADDED, MODIFIED, or DELETED
            deployment: The Deployment object from the event
        """
        if event_type == "DELETED":
            self.store.remove(ObjectRef.from_object(deployment))
            return

        # Events for keys the store has never held count as first observations
        if self.store.add_or_update(deployment):
            self._notify_add(deployment)

    def _notify_add(self, deployment: client.V1Deployment) -> None:
        for handler in self._handlers:
            try:
                handler(deployment)
            except Exception:
                logger.exception(f"Add handler failed for deployment {ObjectRef.from_object(deployment)}")


def wait_for_cache_sync(
    stop_event: threading.Event,
    *synced: Callable[[], bool],
    timeout: Optional[float] = None,
    poll_interval: float = CACHE_SYNC_POLL_SECONDS
) -> bool:
    """
    Wait until every synced() callable returns True.

    Returns:
        True if all caches synced, False if stop_event was set or the timeout passed
    """
    deadline = None if timeout is None else time.monotonic() + timeout

    while not all(fn() for fn in synced):
        if deadline is not None and time.monotonic() >= deadline:
            return False
        if stop_event.wait(poll_interval):
            return False

    return True
