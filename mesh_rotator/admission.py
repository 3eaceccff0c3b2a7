"""Admission filter deciding which deployments are tracked for rotation."""

import logging

from kubernetes import client

from .cache import ObjectRef
from .config import MESH_LABEL, ControllerConfig
from .utils import label_is_true

logger = logging.getLogger(__name__)


class AdmissionFilter:
    """Enqueues newly observed deployments that opted in to rotation."""

    def __init__(self, settings: ControllerConfig, queue):
        """
        Initialize the filter.

        Args:
            settings: Controller configuration holding the namespace allow-list
            queue: Work queue receiving eligible deployments
        """
        self.settings = settings
        self.queue = queue

    def is_eligible(self, deployment: client.V1Deployment) -> bool:
        """
        Check if a deployment should be tracked.

        A deployment is eligible when its namespace is allowed and its
        mesh label parses as true. A malformed label is a plain rejection.
        """
        metadata = deployment.metadata
        if not self.settings.allows_namespace(metadata.namespace):
            return False
        return label_is_true(metadata.labels, MESH_LABEL)

    def handle_add(self, deployment: client.V1Deployment) -> None:
        """Handle the first observation of a deployment."""
        if not self.is_eligible(deployment):
            return

        ref = ObjectRef.from_object(deployment)
        logger.info(f"Adding Deployment {ref} to the queue")
        self.queue.add(ref)
