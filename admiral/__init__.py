"""
Admiral
Addon orchestration for homelab Kubernetes clusters, built on Pulumi
"""

from .addons import create_addon_resources
from .cluster import EksClusterHandle, lookup_cluster_handle

__all__ = [
    "create_addon_resources",
    "EksClusterHandle",
    "lookup_cluster_handle",
]
