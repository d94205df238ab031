"""
Admiral Errors
Exception hierarchy for addon validation and deployment
"""

from typing import List, Sequence, Tuple


class AdmiralError(Exception):
    """Base exception for Admiral errors"""
    pass


class ConfigurationError(AdmiralError):
    """Raised when stack configuration is invalid or malformed"""
    pass


class AddonValidationError(AdmiralError):
    """Raised when an addon set is rejected before any resource is created"""
    pass


class DuplicateNameError(AddonValidationError):
    """Raised when two or more addons share a name"""

    def __init__(self, duplicates: Sequence[str]):
        self.duplicates = list(duplicates)
        super().__init__(f"Duplicate addon names found: {', '.join(self.duplicates)}")


class SchemaError(AddonValidationError):
    """Raised when addons are missing required fields"""

    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        if len(self.problems) == 1:
            message = self.problems[0]
        else:
            message = "\n".join(
                ["Addon configuration validation failed:"] + [f"  - {p}" for p in self.problems]
            )
        super().__init__(message)


class UnknownDependencyError(AddonValidationError):
    """Raised when a dependency entry references an addon that is not in the set"""

    def __init__(self, missing: Sequence[Tuple[str, str]]):
        # (owner, missing name); owner == missing name when the owner itself is unknown
        self.missing = list(missing)
        problems = []
        for owner, name in self.missing:
            if owner == name:
                problems.append(f"Dependency references non-existent addon: {name}")
            else:
                problems.append(f"Dependency '{owner}' references non-existent addon: {name}")
        self.problems: List[str] = problems
        if len(problems) == 1:
            message = problems[0]
        else:
            message = "\n".join(["Addon dependency validation failed:"] + [f"  - {p}" for p in problems])
        super().__init__(message)


class CycleError(AddonValidationError):
    """Raised when the addon dependency graph contains a cycle"""

    def __init__(self, addon: str, path: Sequence[str] = ()):
        self.addon = addon
        self.path = list(path)
        message = f"Circular dependency detected involving addon: {addon}"
        if self.path:
            message += f" ({' -> '.join(self.path)})"
        super().__init__(message)


class DeploymentError(AdmiralError):
    """Raised by a cluster handle when a namespace, role or chart cannot be created"""
    pass
