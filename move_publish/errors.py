"""Error types raised by the build and publish pipeline."""

from __future__ import annotations

from pathlib import Path
from typing import Union


class DeployError(RuntimeError):
    """Base class for every failure surfaced by move-publish."""


class ConfigurationError(DeployError):
    """Raised when flags or settings are incompatible with the target network."""


class ConsistencyError(DeployError):
    """Raised when pinned framework revisions diverge across packages."""


class ToolchainError(DeployError):
    """Raised when the external toolchain fails in a way the caller cannot recover from."""


class ToolchainTimeoutError(ToolchainError):
    """Raised when a toolchain subprocess exceeds its timeout."""


class BuildOutputError(DeployError):
    """Raised when neither build JSON nor on-disk artifacts yield compiled modules."""


class ExecutionError(DeployError):
    """Raised when a publish transaction fails on chain or returns nothing usable."""


class NetworkError(DeployError):
    """Raised when the JSON-RPC endpoint cannot be reached or reports an error."""


class ArtifactReadError(DeployError):
    """Raised when an existing deployment record cannot be read or validated."""

    def __init__(self, path: Union[str, Path], cause: object) -> None:
        self.path = Path(path)
        super().__init__(f"Failed to read artifact at {self.path}: {cause}")


class ArtifactWriteError(DeployError):
    """Raised when the deployment record cannot be persisted."""

    def __init__(self, path: Union[str, Path], cause: object) -> None:
        self.path = Path(path)
        super().__init__(f"Failed to write artifact at {self.path}: {cause}")


__all__ = [
    "ArtifactReadError",
    "ArtifactWriteError",
    "BuildOutputError",
    "ConfigurationError",
    "ConsistencyError",
    "DeployError",
    "ExecutionError",
    "NetworkError",
    "ToolchainError",
    "ToolchainTimeoutError",
]
