"""
Addons Module Functions
Dependency-ordered deployment of cluster addons: namespaces, IRSA roles and Helm releases
"""

import pulumi
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from admiral.addons.ordering import merge_dependencies, resolve_deployment_order
from admiral.addons.types import AddonDependency, AddonSpec, DeploymentMethod
from admiral.addons.validation import validate_addons
from admiral.cluster.functions import ClusterHandle
from admiral.iam.functions import (
    ROLE_ARN_ANNOTATION,
    service_account_claims,
    service_account_role_name,
)
from admiral.naming import PROJECT_NAME, generate_standard_tags

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
ADDON_LABEL = f"{PROJECT_NAME}.homelab/addon"


@dataclass(frozen=True)
class AddonWarning:
    addon: str
    message: str

    def __str__(self) -> str:
        return f"[{self.addon}] {self.message}"


@dataclass(frozen=True)
class AddonDeployment:
    """
    Result of an addon deployment

    Attributes:
        helm_charts: Helm releases, one per addon deployed with cdk-helm
        service_accounts: Addon name to federated role, for addons with a service account
        namespaces: Namespace manifests created for addons
        deployment_order: Every addon name, enabled or not, in resolved order
        warnings: Non-fatal findings (ignored references, methods not executed)
    """

    helm_charts: Tuple[Any, ...]
    service_accounts: Mapping[str, Any]
    namespaces: Tuple[Any, ...]
    deployment_order: Tuple[str, ...]
    warnings: Tuple[AddonWarning, ...] = ()
    addons: Mapping[str, AddonSpec] = field(default_factory=dict, repr=False)

    def is_addon_deployed(self, name: str) -> bool:
        """
        Check whether an addon is part of the deployment order

        Disabled addons keep their slot in the order, so this returns True
        for them as well.
        """
        return name in self.deployment_order

    def get_service_account_role(self, name: str) -> Optional[Any]:
        return self.service_accounts.get(name)

    def get_addon(self, name: str) -> Optional[AddonSpec]:
        return self.addons.get(name)


@dataclass
class _DeploymentState:
    """Side-effect handles accumulated while walking the deployment order"""

    helm_charts: List[Any] = field(default_factory=list)
    service_accounts: Dict[str, Any] = field(default_factory=dict)
    namespaces: Dict[str, Any] = field(default_factory=dict)
    warnings: List[AddonWarning] = field(default_factory=list)

    def warn(self, addon: str, message: str) -> None:
        warning = AddonWarning(addon, message)
        self.warnings.append(warning)
        pulumi.log.warn(str(warning))

    def freeze(self, deployment_order: Sequence[str], addons: Sequence[AddonSpec]) -> AddonDeployment:
        return AddonDeployment(
            helm_charts=tuple(self.helm_charts),
            service_accounts=MappingProxyType(dict(self.service_accounts)),
            namespaces=tuple(self.namespaces.values()),
            deployment_order=tuple(deployment_order),
            warnings=tuple(self.warnings),
            addons=MappingProxyType({addon.name: addon for addon in addons}),
        )


def build_namespace_manifest(addon: AddonSpec) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {
            "name": addon.namespace,
            "labels": {
                MANAGED_BY_LABEL: PROJECT_NAME,
                ADDON_LABEL: addon.name,
            },
        },
    }


def build_helm_values(addon: AddonSpec, role: Optional[Any] = None) -> Dict[str, Any]:
    """
    Merge addon values with the service account binding for its role

    Args:
        addon: Addon being deployed
        role: Federated role created for the addon's service account, if any

    Returns:
        New values dict; the addon's own values are not modified
    """
    values = dict(addon.values)
    if addon.service_account is None or role is None:
        return values

    service_account = dict(values.get("serviceAccount") or {})
    annotations = dict(service_account.get("annotations") or {})
    annotations[ROLE_ARN_ANNOTATION] = role.arn
    # The chart must not create its own account; it binds to the role-annotated one
    service_account.update({
        "create": False,
        "name": addon.service_account.name,
        "annotations": annotations,
    })
    values["serviceAccount"] = service_account
    return values


def create_namespace(cluster: ClusterHandle, addon: AddonSpec) -> Any:
    pulumi.log.info(f"Creating namespace {addon.namespace} for addon {addon.name}")
    return cluster.apply_manifest(f"{addon.name}-namespace", build_namespace_manifest(addon))


def create_service_account_role(cluster: ClusterHandle, addon: AddonSpec,
                                environment: str, homelab_type: str,
                                tags: Dict[str, str] = None) -> Any:
    """
    Create the federated role for an addon's service account

    Args:
        cluster: Cluster handle
        addon: Addon with a service_account block
        environment: Environment name, used in the role name
        homelab_type: Homelab type, used in tags
        tags: Additional tags

    Returns:
        Role handle exposing name and arn
    """
    service_account = addon.service_account
    role_name = service_account_role_name(environment, service_account.name)
    pulumi.log.info(
        f"Creating role {role_name} for service account "
        f"{service_account.namespace}/{service_account.name}"
    )
    return cluster.create_federated_role(
        f"{addon.name}-sa-role",
        role_name,
        cluster.identity_provider,
        service_account_claims(service_account.namespace, service_account.name),
        list(service_account.policy_statements),
        tags=generate_standard_tags(environment, homelab_type, {**(tags or {}), "Addon": addon.name}),
    )


def deploy_helm_chart(cluster: ClusterHandle, addon: AddonSpec, environment: str,
                      role: Optional[Any] = None, namespace: Optional[Any] = None) -> Any:
    """
    Deploy an addon as a Helm release

    Args:
        cluster: Cluster handle
        addon: Addon with helm_config
        environment: Environment name, used in the default release name
        role: Service account role to bind through values, if any
        namespace: Namespace handle the release must wait for, if any

    Returns:
        Helm release handle
    """
    helm_config = addon.helm_config
    release_name = helm_config.release_name or f"{addon.name}-{environment}"
    pulumi.log.info(f"Deploying chart {helm_config.chart} as release {release_name}")

    return cluster.install_helm_chart(
        f"{addon.name}-chart",
        chart=helm_config.chart,
        repository=helm_config.repository,
        version=helm_config.version,
        release_name=release_name,
        namespace=addon.namespace,
        values=build_helm_values(addon, role),
        create_namespace=False,
        depends_on=[namespace] if namespace is not None else [],
    )


def create_addon_resources(cluster: ClusterHandle,
                           environment: str,
                           homelab_type: str,
                           addons: Sequence[AddonSpec],
                           dependencies: Sequence[AddonDependency] = (),
                           tags: Dict[str, str] = None) -> AddonDeployment:
    """
    Validate, order and deploy a set of addons onto a cluster

    Addons are processed one at a time in dependency order. Disabled addons
    keep their place in the order but create nothing. Errors raised by the
    cluster handle stop the walk; resources already declared are kept.

    Args:
        cluster: Handle to the target cluster
        environment: Environment name (dev, stage, prod, ...)
        homelab_type: Homelab type, used for tagging
        addons: Addon set in declaration order
        dependencies: External dependency declarations
        tags: Additional tags for created AWS resources

    Returns:
        AddonDeployment with created handles and the resolved order

    Raises:
        DuplicateNameError, SchemaError, UnknownDependencyError: Invalid addon set
        CycleError: Dependency graph has a cycle
    """
    addons = list(addons)
    dependencies = list(dependencies)

    validate_addons(addons, dependencies)

    deployment_order, skipped = resolve_deployment_order(
        [addon.name for addon in addons],
        merge_dependencies(addons, dependencies)
    )
    pulumi.log.info(f"Addon deployment order: {', '.join(deployment_order)}")

    state = _DeploymentState()
    for addon_name, dependency in skipped:
        state.warn(addon_name, f"depends on '{dependency}', which is not in this addon set; ignored")

    addons_by_name = {addon.name: addon for addon in addons}
    for addon_name in deployment_order:
        addon = addons_by_name[addon_name]
        if not addon.enabled:
            pulumi.log.info(f"Skipping disabled addon {addon_name}")
            continue

        if addon.create_namespace and addon.namespace:
            state.namespaces[addon_name] = create_namespace(cluster, addon)

        if addon.service_account is not None:
            state.service_accounts[addon_name] = create_service_account_role(
                cluster, addon, environment, homelab_type, tags
            )

        if addon.deployment_method == DeploymentMethod.CDK_HELM and addon.helm_config is not None:
            state.helm_charts.append(deploy_helm_chart(
                cluster,
                addon,
                environment,
                role=state.service_accounts.get(addon_name),
                namespace=state.namespaces.get(addon_name),
            ))
        elif addon.deployment_method != DeploymentMethod.CDK_HELM:
            # TODO: execute helm-cli, kustomize and kubectl addons once the cluster handle exposes them
            method = DeploymentMethod(addon.deployment_method).value
            state.warn(
                addon_name,
                f"deployment method '{method}' is not executed; no release created"
            )

    return state.freeze(deployment_order, addons)
