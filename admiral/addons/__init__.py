"""
Addons Module
Validated, dependency-ordered deployment of cluster addons
"""

from .functions import AddonDeployment, AddonWarning, create_addon_resources
from .ordering import merge_dependencies, resolve_deployment_order
from .types import (
    AddonDependency,
    AddonSpec,
    DeploymentMethod,
    HelmChartConfig,
    ServiceAccountConfig,
)
from .validation import validate_addons

__all__ = [
    "AddonDependency",
    "AddonDeployment",
    "AddonSpec",
    "AddonWarning",
    "DeploymentMethod",
    "HelmChartConfig",
    "ServiceAccountConfig",
    "create_addon_resources",
    "merge_dependencies",
    "resolve_deployment_order",
    "validate_addons",
]
