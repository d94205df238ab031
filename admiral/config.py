"""
Configuration management for Admiral addon deployments
"""

import re
import pulumi
from typing import Any, Dict, List

from admiral.addons.types import AddonDependency, AddonSpec
from admiral.errors import ConfigurationError
from admiral.naming import generate_standard_tags

HOMELAB_TYPES = ("local", "basic-cloud", "advanced-cloud")
ENVIRONMENT_PATTERN = re.compile(r"^[a-z0-9-]+$")


class Config:
    """Centralized configuration for an addon deployment stack"""

    def __init__(self):
        self.config = pulumi.Config()

        # Target cluster
        self.cluster_name = self.config.get("cluster_name") or "admiral"
        enable_irsa = self.config.get_bool("enable_irsa")
        self.enable_irsa = True if enable_irsa is None else enable_irsa

        # Deployment identity
        self.environment = self.config.get("environment") or "dev"
        self.homelab_type = self.config.get("homelab_type") or "basic-cloud"

        # Addon definitions
        self.raw_addons = self.config.get_object("addons") or []
        self.raw_dependencies = self.config.get_object("addonDependencies") or []

        # Additional tags
        self.additional_tags = self.config.get_object("tags") or {}

        self.validate()

    def validate(self) -> None:
        """Reject settings the orchestrator cannot work with"""
        if self.homelab_type not in HOMELAB_TYPES:
            raise ConfigurationError(
                f"Invalid homelab_type '{self.homelab_type}'. Must be: {', '.join(HOMELAB_TYPES)}"
            )
        if not ENVIRONMENT_PATTERN.match(self.environment):
            raise ConfigurationError(
                f"Invalid environment '{self.environment}'. Use lowercase letters, digits and dashes"
            )
        if not isinstance(self.raw_addons, list):
            raise ConfigurationError("'addons' must be a list of addon definitions")
        if not isinstance(self.raw_dependencies, list):
            raise ConfigurationError("'addonDependencies' must be a list of dependency definitions")

    @property
    def common_tags(self) -> Dict[str, str]:
        """Get standard tags for all resources, with stack tags applied on top"""
        return generate_standard_tags(self.environment, self.homelab_type, self.additional_tags)

    @property
    def addons(self) -> List[AddonSpec]:
        """Get addon definitions in declaration order"""
        return [AddonSpec.from_dict(_as_mapping(entry, "addons", index))
                for index, entry in enumerate(self.raw_addons)]

    @property
    def dependencies(self) -> List[AddonDependency]:
        return [AddonDependency.from_dict(_as_mapping(entry, "addonDependencies", index))
                for index, entry in enumerate(self.raw_dependencies)]


def _as_mapping(entry: Any, key: str, index: int) -> Dict[str, Any]:
    if not isinstance(entry, dict):
        raise ConfigurationError(f"'{key}' entry at index {index} must be an object")
    return entry


def get_config() -> Config:
    """Get the stack configuration"""
    return Config()
