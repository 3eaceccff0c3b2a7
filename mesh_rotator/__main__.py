"""
Mesh Deployment Rotator - Entry Point

Watches Deployments labelled mesh=true and recreates them once they are
older than the configured interval.

Usage:
    python -m mesh_rotator [--kubeconfig PATH] [--in-cluster] [--interval MINUTES] [NAMESPACE ...]
"""

import argparse
import logging
import os
import signal
import sys
import threading

from kubernetes import config

from .config import DEFAULT_INTERVAL_MINUTES, ControllerConfig
from .controller import MeshRotationController

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mesh-rotator",
        description="Mesh Deployment Rotator - Recreate mesh-enabled deployments older than an interval"
    )
    parser.add_argument(
        "--kubeconfig",
        default=os.path.join(os.path.expanduser("~"), ".kube", "config"),
        help="Path to the kubeconfig file (default: ~/.kube/config)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=DEFAULT_INTERVAL_MINUTES,
        help="Age in minutes after which matched deployments are rotated (default: %(default)s)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )
    parser.add_argument(
        "namespaces",
        nargs="*",
        help="Namespaces to rotate deployments in (default: all namespaces)"
    )
    return parser


def load_kube_config(kubeconfig: str, in_cluster: bool = False) -> None:
    """
    Load Kubernetes configuration.

    Tries the kubeconfig file first and falls back to the in-cluster
    configuration when it cannot be loaded.
    """
    if not in_cluster:
        try:
            config.load_kube_config(config_file=kubeconfig)
            logger.info(f"Loaded kubeconfig from {kubeconfig}")
            return
        except Exception as e:
            logger.warning(f"Error building config from {kubeconfig}: {e}")

    config.load_incluster_config()
    logger.info("Loaded in-cluster configuration")


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        settings = ControllerConfig.from_args(args.interval, args.namespaces)
    except ValueError as e:
        parser.error(str(e))

    try:
        load_kube_config(args.kubeconfig, in_cluster=args.in_cluster)
    except Exception as e:
        logger.error(f"Failed to load Kubernetes config: {e}")
        sys.exit(1)

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())

    controller = MeshRotationController(settings)

    try:
        controller.run(stop_event)
    except Exception as e:
        logger.error(f"Controller error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
