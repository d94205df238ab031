"""
Admiral Addons
Deploys the configured addon set onto an existing EKS cluster
"""
import pulumi
from admiral.addons import create_addon_resources
from admiral.cluster import lookup_cluster_handle
from admiral.config import get_config

# Configuration
config = get_config()

# 1. Handle to the already-provisioned cluster
cluster = lookup_cluster_handle(config.cluster_name, enable_irsa=config.enable_irsa)

# 2. Addons in dependency order
deployment = create_addon_resources(
    cluster,
    environment=config.environment,
    homelab_type=config.homelab_type,
    addons=config.addons,
    dependencies=config.dependencies,
    tags=config.common_tags,
)

# Exports
pulumi.export("cluster_name", config.cluster_name)
pulumi.export("deployment_order", list(deployment.deployment_order))
pulumi.export("helm_releases", [release.name for release in deployment.helm_charts])
pulumi.export("service_account_roles",
    {addon: role.arn for addon, role in deployment.service_accounts.items()})
pulumi.export("warnings", [str(warning) for warning in deployment.warnings])
