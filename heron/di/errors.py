"""
DI-specific error types with rich diagnostics.
"""

from typing import Any, List, Optional


def token_name(token: Any) -> str:
    """Readable name for a provider token."""
    if isinstance(token, type):
        return f"{token.__module__}.{token.__qualname__}"
    return str(token)


class DIError(Exception):
    """Base exception for DI errors."""
    pass


class ProviderNotFoundError(DIError):
    """Provider not found for requested token."""

    def __init__(
        self,
        token: Any,
        requested_by: Optional[Any] = None,
        candidates: Optional[List[str]] = None,
    ):
        self.token = token
        self.requested_by = requested_by
        self.candidates = candidates or []

        msg = f"No provider found for token={token_name(token)}"
        if requested_by is not None:
            msg += f"\nRequested by: {token_name(requested_by)}"

        if self.candidates:
            msg += "\n\nCandidates found:"
            for candidate in self.candidates:
                msg += f"\n  - {candidate}"

        msg += "\n\nSuggested fixes:"
        msg += f"\n  - Register a provider for {token_name(token)}"
        msg += "\n  - Add the module that provides it to your module's imports"
        msg += "\n  - Mark the dependency optional with Inject(optional=True)"

        super().__init__(msg)


class DependencyCycleError(DIError):
    """Circular dependency detected while resolving."""

    def __init__(self, cycle: List[Any]):
        self.cycle = cycle

        msg = "Detected dependency cycle:"
        for i, token in enumerate(cycle):
            arrow = " ->" if i < len(cycle) - 1 else ""
            msg += f"\n  {token_name(token)}{arrow}"

        msg += "\n\nSuggested fixes:"
        msg += "\n  - Extract the shared part into a separate provider"
        msg += "\n  - Inject a factory instead of the instance"

        super().__init__(msg)


class InvalidProviderError(DIError):
    """Provider declaration cannot be used."""
    pass
