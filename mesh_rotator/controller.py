"""Main controller logic for the Mesh Deployment Rotator."""

import logging
import threading
from typing import Optional

from kubernetes import client

from .admission import AdmissionFilter
from .config import (
    CACHE_SYNC_TIMEOUT_SECONDS,
    WORKER_PERIOD_SECONDS,
    WORKER_JOIN_TIMEOUT_SECONDS,
    ControllerConfig,
)
from .informer import DeploymentInformer, wait_for_cache_sync
from .reconciler import DeploymentReconciler
from .utils import run_until
from .workqueue import RateLimitingQueue

logger = logging.getLogger(__name__)


class MeshRotationController:
    """
    Watches mesh-enabled deployments and recreates them once they
    are older than the configured interval.
    """

    def __init__(
        self,
        settings: ControllerConfig,
        apps_api: Optional[client.AppsV1Api] = None,
        informer: Optional[DeploymentInformer] = None
    ):
        """
        Initialize the controller.

        Args:
            settings: Controller configuration
            apps_api: Client for the apps/v1 API (created if omitted)
            informer: Deployment informer (created if omitted)
        """
        self.settings = settings
        self.apps_api = apps_api or client.AppsV1Api()

        self.queue = RateLimitingQueue(name="deployments")
        self.informer = informer or DeploymentInformer(self.apps_api)
        self.admission = AdmissionFilter(settings, self.queue)
        self.reconciler = DeploymentReconciler(
            settings,
            self.queue,
            self.informer.store,
            apps_api=self.apps_api
        )

        self.informer.add_handler(self.admission.handle_add)

    def run(self, stop_event: threading.Event) -> None:
        """Run the controller until stop_event is set."""
        logger.info("Starting mesh rotation controller")
        logger.info(f"Namespaces: {', '.join(sorted(self.settings.namespaces)) or 'all namespaces'}")
        logger.info(f"Rotation interval: {self.settings.interval_minutes} minute(s)")

        worker_thread = None
        try:
            self.informer.start(stop_event)

            logger.info("Waiting for deployment cache to sync...")
            if not wait_for_cache_sync(stop_event, self.informer.has_synced, timeout=CACHE_SYNC_TIMEOUT_SECONDS):
                logger.warning("Deployment cache did not sync, starting worker anyway")

            worker_thread = threading.Thread(
                target=run_until,
                args=(self.reconciler.worker, WORKER_PERIOD_SECONDS, stop_event),
                name="reconcile-worker",
                daemon=True
            )
            worker_thread.start()

            logger.info("Controller is running. Press Ctrl+C to stop.")

            while not stop_event.wait(1):
                pass
        except KeyboardInterrupt:
            logger.info("Shutdown requested...")
            stop_event.set()

        self.shutdown()
        if worker_thread is not None:
            worker_thread.join(timeout=WORKER_JOIN_TIMEOUT_SECONDS)
        logger.info("Controller stopped")

    def shutdown(self) -> None:
        """Stop the work queue and the informer watch."""
        logger.info("Stopping controller...")
        self.queue.shut_down()
        self.informer.stop()
