"""Schema definitions for deployment records."""

from .deployment import DeploymentRecords, PublishArtifact

__all__ = [
    "DeploymentRecords",
    "PublishArtifact",
]
