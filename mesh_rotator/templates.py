"""Replacement deployment created after a rotated deployment is deleted."""

from kubernetes import client

from .config import (
    REPLACEMENT_NAME,
    REPLACEMENT_REPLICAS,
    REPLACEMENT_LABELS,
    REPLACEMENT_CONTAINER_NAME,
    REPLACEMENT_IMAGE,
    REPLACEMENT_PORT_NAME,
    REPLACEMENT_PORT,
)


def build_replacement_deployment(namespace: str) -> client.V1Deployment:
    """
    Build the fixed replacement Deployment for a namespace.

    Nothing is copied from the deleted deployment; only the namespace varies.

    Args:
        namespace: Namespace the replacement is created in

    Returns:
        New V1Deployment object
    """
    container = client.V1Container(
        name=REPLACEMENT_CONTAINER_NAME,
        image=REPLACEMENT_IMAGE,
        ports=[
            client.V1ContainerPort(
                name=REPLACEMENT_PORT_NAME,
                protocol="TCP",
                container_port=REPLACEMENT_PORT
            )
        ]
    )

    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(
            name=REPLACEMENT_NAME,
            namespace=namespace,
            labels=dict(REPLACEMENT_LABELS),
        ),
        spec=client.V1DeploymentSpec(
            replicas=REPLACEMENT_REPLICAS,
            selector=client.V1LabelSelector(match_labels=dict(REPLACEMENT_LABELS)),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=dict(REPLACEMENT_LABELS)),
                spec=client.V1PodSpec(containers=[container])
            )
        )
    )
