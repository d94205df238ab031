"""
Cluster Module Functions
Pulumi-backed handle to an existing EKS cluster: manifests, Helm releases and IRSA roles
"""

import json
import pulumi
import pulumi_aws as aws
import pulumi_kubernetes as k8s
from typing import Any, Dict, List, NamedTuple, Optional, Protocol, Sequence

from admiral.errors import DeploymentError
from admiral.iam.functions import create_federated_role


class OidcIdentityProvider(NamedTuple):
    """IAM OIDC identity provider registered for a cluster"""
    arn: 'pulumi.Input[str]'
    issuer_url: 'pulumi.Input[str]'


class ClusterHandle(Protocol):
    """Capabilities the addon orchestrator needs from a provisioned cluster"""

    identity_provider: Optional[OidcIdentityProvider]

    def apply_manifest(self, resource_id: str, manifest: Dict[str, Any]) -> Any:
        ...

    def install_helm_chart(self, resource_id: str, *, chart: str, release_name: str,
                           repository: Optional[str] = None, version: Optional[str] = None,
                           namespace: Optional[str] = None, values: Dict[str, Any] = None,
                           create_namespace: bool = False, depends_on: Sequence[Any] = ()) -> Any:
        ...

    def create_federated_role(self, resource_id: str, role_name: str,
                              identity_provider: Optional[OidcIdentityProvider],
                              claims: Dict[str, str], policy_statements: List[Dict[str, Any]],
                              tags: Dict[str, str] = None) -> Any:
        ...


def build_kubeconfig(cluster_name: str, endpoint: str, ca_data: str) -> str:
    """
    Build a kubeconfig that authenticates with `aws eks get-token`

    Args:
        cluster_name: EKS cluster name
        endpoint: Cluster API endpoint
        ca_data: Base64 certificate authority data

    Returns:
        Kubeconfig document as JSON
    """
    return json.dumps({
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{
            "name": cluster_name,
            "cluster": {"server": endpoint, "certificate-authority-data": ca_data},
        }],
        "contexts": [{
            "name": cluster_name,
            "context": {"cluster": cluster_name, "user": cluster_name},
        }],
        "current-context": cluster_name,
        "users": [{
            "name": cluster_name,
            "user": {
                "exec": {
                    "apiVersion": "client.authentication.k8s.io/v1beta1",
                    "command": "aws",
                    "args": ["eks", "get-token", "--cluster-name", cluster_name],
                }
            },
        }],
    })


def create_kubernetes_provider(cluster_name: str,
                               cluster_endpoint: 'pulumi.Input[str]',
                               cluster_ca_data: 'pulumi.Input[str]') -> k8s.Provider:
    """
    Create Kubernetes provider for EKS cluster

    Args:
        cluster_name: EKS cluster name
        cluster_endpoint: EKS cluster endpoint
        cluster_ca_data: EKS cluster CA certificate data

    Returns:
        Kubernetes provider instance
    """
    kubeconfig = pulumi.Output.all(cluster_name, cluster_endpoint, cluster_ca_data).apply(
        lambda args: build_kubeconfig(args[0], args[1], args[2])
    )
    return k8s.Provider(
        f"{cluster_name}-k8s-provider",
        kubeconfig=kubeconfig
    )


class EksClusterHandle:
    """Cluster handle that declares Pulumi resources against an EKS cluster"""

    def __init__(self, cluster_name: str,
                 cluster_endpoint: 'pulumi.Input[str]',
                 cluster_ca_data: 'pulumi.Input[str]',
                 identity_provider: Optional[OidcIdentityProvider] = None,
                 provider: Optional[k8s.Provider] = None):
        self.cluster_name = cluster_name
        self.identity_provider = identity_provider
        self.provider = provider or create_kubernetes_provider(cluster_name, cluster_endpoint, cluster_ca_data)

    def apply_manifest(self, resource_id: str, manifest: Dict[str, Any]) -> 'k8s.yaml.v2.ConfigGroup':
        return k8s.yaml.v2.ConfigGroup(
            resource_id,
            objs=[manifest],
            opts=pulumi.ResourceOptions(provider=self.provider)
        )

    def install_helm_chart(self, resource_id: str, *, chart: str, release_name: str,
                           repository: Optional[str] = None, version: Optional[str] = None,
                           namespace: Optional[str] = None, values: Dict[str, Any] = None,
                           create_namespace: bool = False,
                           depends_on: Sequence[Any] = ()) -> 'k8s.helm.v3.Release':
        """
        Declare a Helm release

        Args:
            resource_id: Pulumi resource name
            chart: Chart name, or an oci:// reference
            release_name: Helm release name
            repository: Optional chart repository URL
            version: Optional chart version
            namespace: Target namespace
            values: Release values
            create_namespace: Let Helm create the namespace
            depends_on: Resources the release must wait for

        Returns:
            Helm release resource
        """
        repository_opts = None
        if repository:
            repository_opts = k8s.helm.v3.RepositoryOptsArgs(repo=repository)

        return k8s.helm.v3.Release(
            resource_id,
            chart=chart,
            name=release_name,
            version=version,
            namespace=namespace,
            create_namespace=create_namespace,
            repository_opts=repository_opts,
            values=values or {},
            opts=pulumi.ResourceOptions(provider=self.provider, depends_on=list(depends_on))
        )

    def create_federated_role(self, resource_id: str, role_name: str,
                              identity_provider: Optional[OidcIdentityProvider],
                              claims: Dict[str, str], policy_statements: List[Dict[str, Any]],
                              tags: Dict[str, str] = None) -> aws.iam.Role:
        if identity_provider is None:
            raise DeploymentError(
                f"Cluster '{self.cluster_name}' has no OIDC identity provider; "
                f"cannot create federated role {role_name}"
            )
        result = create_federated_role(
            resource_id,
            role_name,
            identity_provider.arn,
            identity_provider.issuer_url,
            claims,
            policy_statements,
            tags=tags
        )
        return result["role"]


def lookup_cluster_handle(cluster_name: str, enable_irsa: bool = True) -> EksClusterHandle:
    """
    Build a cluster handle for an existing EKS cluster

    Args:
        cluster_name: EKS cluster name
        enable_irsa: Look up the cluster's IAM OIDC provider for service account roles

    Returns:
        EksClusterHandle for the cluster
    """
    cluster = aws.eks.get_cluster(name=cluster_name)

    identity_provider = None
    if enable_irsa:
        issuer_url = cluster.identities[0].oidcs[0].issuer
        oidc_provider = aws.iam.get_open_id_connect_provider(url=issuer_url)
        identity_provider = OidcIdentityProvider(arn=oidc_provider.arn, issuer_url=issuer_url)
        pulumi.log.debug(f"Using OIDC provider {oidc_provider.arn} for cluster {cluster_name}")

    return EksClusterHandle(
        cluster_name,
        cluster.endpoint,
        cluster.certificate_authorities[0].data,
        identity_provider=identity_provider
    )
