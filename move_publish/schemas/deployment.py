"""Pydantic models describing persisted deployment records."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class PublishArtifact(BaseModel):
    """One published package as recorded in ``deployment.<network>.json``."""

    network: str
    rpc_url: str = Field(..., alias="rpcUrl")
    package_path: str = Field(..., alias="packagePath")
    package_name: Optional[str] = Field(default=None, alias="packageName")
    package_id: str = Field(..., alias="packageId")
    upgrade_cap: Optional[str] = Field(default=None, alias="upgradeCap")
    publisher_id: Optional[str] = Field(default=None, alias="publisherId")
    is_dependency: bool = Field(default=False, alias="isDependency")
    sender: str
    digest: str
    published_at: datetime = Field(..., alias="publishedAt")
    modules: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    dependency_addresses: Dict[str, str] = Field(default_factory=dict, alias="dependencyAddresses")
    with_unpublished_dependencies: bool = Field(default=False, alias="withUnpublishedDependencies")
    unpublished_dependencies: List[str] = Field(default_factory=list, alias="unpublishedDependencies")
    sui_cli_version: Optional[str] = Field(default=None, alias="suiCliVersion")
    explorer_url: Optional[str] = Field(default=None, alias="explorerUrl")

    # Downstream tools may annotate records; keep their fields on rewrite.
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_record(self) -> Dict[str, object]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


DeploymentRecords = TypeAdapter(List[PublishArtifact])
