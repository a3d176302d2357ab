"""
Exceptions raised while composing an S3 proxy farm.

Every error is raised at synthesis time, before the failing resource is
added to the construct tree. Errors coming from CDK itself are not wrapped.
"""

from typing import Optional, Tuple


class ProxyFarmError(Exception):
    """Base class for all proxy farm errors."""


class FleetConfigurationError(ProxyFarmError, ValueError):
    """Raised when the proxy farm configuration is invalid."""


class MergeConflictError(FleetConfigurationError):
    """Raised when a default and an override disagree on the kind of a value."""

    def __init__(self, path: Tuple[str, ...], default_kind: str, override_kind: str) -> None:
        self.path = path
        self.default_kind = default_kind
        self.override_kind = override_kind
        super().__init__(
            f"Cannot merge '{format_path(path)}': default is {default_kind} "
            f"but override is {override_kind}"
        )


class UnsupportedValueError(FleetConfigurationError, TypeError):
    """Raised when a merge input holds a value that is neither data nor a handle."""

    def __init__(self, path: Tuple[str, ...], value: object) -> None:
        self.path = path
        super().__init__(
            f"Unsupported value for '{format_path(path)}': "
            f"{type(value).__name__} is neither plain data nor a resource handle"
        )


def format_path(path: Optional[Tuple[str, ...]]) -> str:
    return ".".join(path) if path else "<root>"
