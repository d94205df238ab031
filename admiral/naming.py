"""
Naming and tagging helpers shared by Admiral resources
"""

from typing import Dict, Optional

PROJECT_NAME = "admiral"


def generate_resource_name(prefix: str, environment: str, resource_type: str,
                           suffix: Optional[str] = None) -> str:
    """
    Generate a resource name following the <prefix>-<env>-<type>[-<suffix>] convention

    Args:
        prefix: Name prefix, usually the project name
        environment: Environment name
        resource_type: Resource type segment
        suffix: Optional trailing segment

    Returns:
        Lowercased, dash-joined resource name
    """
    parts = [prefix, environment, resource_type]
    if suffix:
        parts.append(suffix)
    return "-".join(parts).lower()


def generate_standard_tags(environment: str, homelab_type: str,
                           additional_tags: Dict[str, str] = None) -> Dict[str, str]:
    """Get the standard tags applied to every AWS resource Admiral creates"""
    tags = {
        "Environment": environment,
        "Project": PROJECT_NAME,
        "HomelabType": homelab_type,
        "ManagedBy": "pulumi",
        "CreatedBy": "admiral-homelab",
    }
    tags.update(additional_tags or {})
    return tags
