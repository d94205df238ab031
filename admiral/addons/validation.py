"""
Addon Validation
Rejects malformed addon sets before any resource is declared
"""

from collections import Counter
from typing import List, Sequence, Tuple

from admiral.addons.types import AddonDependency, AddonSpec, DeploymentMethod
from admiral.errors import DuplicateNameError, SchemaError, UnknownDependencyError

DEPLOYMENT_METHODS = tuple(method.value for method in DeploymentMethod)


def find_duplicate_names(addons: Sequence[AddonSpec]) -> List[str]:
    """
    Find addon names declared more than once

    Args:
        addons: Addon set in declaration order

    Returns:
        Each duplicated name once, in order of first appearance
    """
    counts = Counter(addon.name for addon in addons if addon.name)
    duplicates = []
    for addon in addons:
        if addon.name and counts[addon.name] > 1 and addon.name not in duplicates:
            duplicates.append(addon.name)
    return duplicates


def find_schema_problems(addons: Sequence[AddonSpec]) -> List[str]:
    """Check every addon for missing required fields, one message per violation"""
    problems = []
    for index, addon in enumerate(addons):
        if not addon.name:
            problems.append(f"Addon at index {index} must have a name")
        label = f"'{addon.name}'" if addon.name else f"at index {index}"

        if addon.deployment_method not in DEPLOYMENT_METHODS:
            problems.append(
                f"Addon {label} has unknown deploymentMethod '{addon.deployment_method}' "
                f"(expected one of: {', '.join(DEPLOYMENT_METHODS)})"
            )

        if addon.deployment_method == DeploymentMethod.CDK_HELM and addon.helm_config is None:
            problems.append(f"Addon {label} using cdk-helm method must have helmConfig")

        if addon.helm_config is not None and not addon.helm_config.chart:
            problems.append(f"Addon {label} helmConfig must specify a chart name")

        if addon.service_account is not None:
            if not addon.service_account.name or not addon.service_account.namespace:
                problems.append(f"Addon {label} serviceAccount must have name and namespace")
    return problems


def find_unknown_dependencies(addons: Sequence[AddonSpec],
                              dependencies: Sequence[AddonDependency]) -> List[Tuple[str, str]]:
    """
    Check external dependency entries against the addon set

    Inline depends_on lists are not checked here; references outside the
    batch are dropped during ordering instead.

    Returns:
        (owner, missing name) pairs; an unknown owner is reported as (owner, owner)
    """
    names = {addon.name for addon in addons}
    missing = []
    for dependency in dependencies:
        if dependency.addon not in names:
            missing.append((dependency.addon, dependency.addon))
        for name in dependency.depends_on:
            if name not in names:
                missing.append((dependency.addon, name))
    return missing


def validate_addons(addons: Sequence[AddonSpec], dependencies: Sequence[AddonDependency]) -> None:
    """
    Validate an addon set and its dependency declarations

    Categories are checked in order: duplicate names, per-addon schema,
    dependency references. The first failing category is raised.

    Raises:
        DuplicateNameError: If names repeat
        SchemaError: If required fields are missing
        UnknownDependencyError: If a dependency entry names an unknown addon
    """
    duplicates = find_duplicate_names(addons)
    if duplicates:
        raise DuplicateNameError(duplicates)

    problems = find_schema_problems(addons)
    if problems:
        raise SchemaError(problems)

    missing = find_unknown_dependencies(addons, dependencies)
    if missing:
        raise UnknownDependencyError(missing)
