"""Mesh Deployment Rotator: recreates mesh-enabled Deployments past a configured age."""

__version__ = "0.1.0"
