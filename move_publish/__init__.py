"""Build, publish and record Sui Move packages."""

__version__ = "0.1.0"
from .config import DeployConfig, NetworkConfig, load_config
from .consistency import ConsistencyReport, check_framework_consistency
from .deployments import ArtifactStore
from .errors import (
    ArtifactReadError,
    ArtifactWriteError,
    BuildOutputError,
    ConfigurationError,
    ConsistencyError,
    DeployError,
    ExecutionError,
    NetworkError,
    ToolchainError,
    ToolchainTimeoutError,
)
from .publish import (
    PublishOutcome,
    PublishPlan,
    PublishRequest,
    PublishResult,
    PublishStrategy,
    publish_package,
)
from .schemas.deployment import PublishArtifact
from .toolchain import ToolchainResult, ToolchainRunner

__all__ = [
    "__version__",
    "ArtifactReadError",
    "ArtifactStore",
    "ArtifactWriteError",
    "BuildOutputError",
    "ConfigurationError",
    "ConsistencyError",
    "ConsistencyReport",
    "DeployConfig",
    "DeployError",
    "ExecutionError",
    "NetworkConfig",
    "NetworkError",
    "PublishArtifact",
    "PublishOutcome",
    "PublishPlan",
    "PublishRequest",
    "PublishResult",
    "PublishStrategy",
    "ToolchainError",
    "ToolchainResult",
    "ToolchainRunner",
    "ToolchainTimeoutError",
    "check_framework_consistency",
    "load_config",
    "publish_package",
]
