"""
Addon Types
Addon definitions, dependency declarations and their stack-config parsing
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from admiral.errors import ConfigurationError


class DeploymentMethod(str, Enum):
    """How an addon is delivered to the cluster"""

    CDK_HELM = "cdk-helm"
    HELM_CLI = "helm-cli"
    KUSTOMIZE = "kustomize"
    KUBECTL = "kubectl"


@dataclass(frozen=True)
class HelmChartConfig:
    chart: Optional[str]
    repository: Optional[str] = None
    version: Optional[str] = None
    release_name: Optional[str] = None


@dataclass(frozen=True)
class ServiceAccountConfig:
    name: Optional[str]
    namespace: Optional[str]
    policy_statements: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class AddonSpec:
    """
    One addon in a deployment batch

    Required fields are allowed to be empty here so that the validator can
    report every problem at once instead of failing on the first parse.
    """

    name: Optional[str]
    enabled: bool = True
    deployment_method: Union[DeploymentMethod, str] = DeploymentMethod.CDK_HELM
    helm_config: Optional[HelmChartConfig] = None
    namespace: Optional[str] = None
    create_namespace: bool = False
    depends_on: List[str] = field(default_factory=list)
    service_account: Optional[ServiceAccountConfig] = None
    values: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AddonSpec":
        """
        Build an addon from a camelCase stack-config document

        An unrecognised deploymentMethod is kept as the raw string so the
        validator can report it alongside every other schema problem.

        Args:
            data: Addon document, e.g. {"name": "cert-manager", "helmConfig": {...}}

        Returns:
            Parsed AddonSpec

        Raises:
            ConfigurationError: If a nested field has the wrong shape
        """
        name = data.get("name")

        method = data.get("deploymentMethod", DeploymentMethod.CDK_HELM.value)
        try:
            deployment_method = DeploymentMethod(method)
        except ValueError:
            deployment_method = method

        helm_config = None
        helm_data = _mapping_field(data, "helmConfig", name)
        if helm_data is not None:
            helm_config = HelmChartConfig(
                chart=helm_data.get("chart"),
                repository=helm_data.get("repository"),
                version=helm_data.get("version"),
                release_name=helm_data.get("releaseName") or helm_data.get("release"),
            )

        service_account = None
        sa_data = _mapping_field(data, "serviceAccount", name)
        if sa_data is not None:
            service_account = ServiceAccountConfig(
                name=sa_data.get("name"),
                namespace=sa_data.get("namespace"),
                policy_statements=_list_field(
                    sa_data, "policyStatements", name, "serviceAccount.policyStatements"
                ),
            )

        return cls(
            name=name,
            enabled=bool(data.get("enabled", True)),
            deployment_method=deployment_method,
            helm_config=helm_config,
            namespace=data.get("namespace"),
            create_namespace=bool(data.get("createNamespace", False)),
            depends_on=_list_field(data, "dependsOn", name),
            service_account=service_account,
            values=dict(_mapping_field(data, "values", name) or {}),
        )


@dataclass(frozen=True)
class AddonDependency:
    """External dependency declaration, unioned with the addon's inline depends_on"""

    addon: str
    depends_on: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AddonDependency":
        addon = data.get("addon")
        return cls(addon=addon, depends_on=_list_field(data, "dependsOn", addon))


def _mapping_field(data: Dict[str, Any], key: str, addon: Optional[str]) -> Optional[Dict[str, Any]]:
    value = data.get(key)
    if value is not None and not isinstance(value, dict):
        raise ConfigurationError(f"Addon '{addon}' {key} must be an object, got {type(value).__name__}")
    return value


def _list_field(data: Dict[str, Any], key: str, addon: Optional[str], label: str = None) -> List[Any]:
    # A bare string would otherwise be split into characters
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(
            f"Addon '{addon}' {label or key} must be a list, got {type(value).__name__}"
        )
    return list(value)
