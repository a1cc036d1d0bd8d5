"""Domain-Oriented Observability for IAM infrastructure."""

from iam.infrastructure.observability.repository_probe import (
    DefaultUserRepositoryProbe,
    UserRepositoryProbe,
)

__all__ = ["DefaultUserRepositoryProbe", "UserRepositoryProbe"]
