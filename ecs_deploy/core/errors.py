"""Errors raised while compiling a deployment plan.

Every error is raised synchronously during plan construction and is never
caught by the compiler itself: a plan is either complete or not produced.
"""

from __future__ import annotations


class DeploymentConfigError(ValueError):
    """Base class for all plan compilation failures."""


class ConfigValidationError(DeploymentConfigError):
    """Raised when stage configuration is missing or contradictory."""


class MissingHostedZone(DeploymentConfigError):
    """Raised when a certificate must be created but no hosted zone resolves."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        target = domain or "<empty domain>"
        super().__init__(f"Route53 hosted zone for '{target}' is needed to create an ACM certificate")


class DuplicateSecretVariable(DeploymentConfigError):
    """Raised when two secret bindings target the same environment variable."""

    def __init__(self, variable: str, first: tuple[str, str], second: tuple[str, str]) -> None:
        self.variable = variable
        self.first = first
        self.second = second
        super().__init__(
            f"Environment variable '{variable}' is bound twice: "
            f"{first[0]}#{first[1]} and {second[0]}#{second[1]}"
        )


class AutoscalingBoundsError(DeploymentConfigError):
    """Raised when autoscaling min capacity exceeds max capacity."""

    def __init__(self, min_capacity: int, max_capacity: int) -> None:
        self.min_capacity = min_capacity
        self.max_capacity = max_capacity
        super().__init__(f"Autoscaling min_capacity ({min_capacity}) must not exceed max_capacity ({max_capacity})")


class ResourceLookupError(DeploymentConfigError):
    """Raised when an external lookup (VPC, hosted zone, secret) fails."""


class PlanOrderingError(DeploymentConfigError):
    """Raised when a node references a dependency not yet present in the graph."""
