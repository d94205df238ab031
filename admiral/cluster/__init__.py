"""
Cluster Module
Handle to an already-provisioned cluster, consumed by the addon orchestrator
"""

from .functions import (
    ClusterHandle,
    EksClusterHandle,
    OidcIdentityProvider,
    create_kubernetes_provider,
    lookup_cluster_handle,
)

__all__ = [
    "ClusterHandle",
    "EksClusterHandle",
    "OidcIdentityProvider",
    "create_kubernetes_provider",
    "lookup_cluster_handle",
]
