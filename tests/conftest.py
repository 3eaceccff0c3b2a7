"""Shared fixtures and factories for the rotator tests."""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Callable
from unittest.mock import MagicMock

import pytest
from kubernetes import client

from mesh_rotator.cache import DeploymentStore
from mesh_rotator.config import ControllerConfig
from mesh_rotator.workqueue import RateLimitingQueue

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)

MESH_LABELS = {"app": "web", "mesh": "true"}


def make_deployment(
    name: str = "foo",
    namespace: str = "default",
    labels: dict | None = MESH_LABELS,
    age: timedelta = timedelta(0),
    resource_version: str = "1",
) -> client.V1Deployment:
    """Build a Deployment created `age` before NOW."""
    return client.V1Deployment(
        api_version="apps/v1",
        kind="Deployment",
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            labels=dict(labels) if labels is not None else None,
            creation_timestamp=NOW - age,
            resource_version=resource_version,
        ),
    )


def wait_for(condition: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll condition until it is true or the timeout passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


@pytest.fixture
def queue():
    q = RateLimitingQueue(name="test")
    yield q
    q.shut_down()


@pytest.fixture
def store() -> DeploymentStore:
    return DeploymentStore()


@pytest.fixture
def apps_api() -> MagicMock:
    return MagicMock()


@pytest.fixture
def settings() -> ControllerConfig:
    return ControllerConfig(interval_minutes=10, recheck_delay=0)
