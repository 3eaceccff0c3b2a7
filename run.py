#!/usr/bin/env python3
"""
Mesh Deployment Rotator - Entry Point

Recreates Deployments labelled mesh=true once they are older than the
configured interval, optionally restricted to a list of namespaces.

Usage:
    python run.py [--kubeconfig PATH] [--in-cluster] [--interval MINUTES] [-v] [NAMESPACE ...]
"""

from mesh_rotator.__main__ import main


if __name__ == "__main__":
    main()
