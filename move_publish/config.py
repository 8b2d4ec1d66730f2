"""Deployment configuration loaded from YAML and environment variables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError

DEFAULT_GAS_BUDGET = 1_000_000_000
DEFAULT_CONFIG_FILENAME = "move-publish.yaml"
PERMISSIVE_NETWORK = "localnet"

BUILTIN_NETWORKS: Dict[str, Dict[str, Any]] = {
    "localnet": {
        "rpc_url": "http://127.0.0.1:9000",
        "permissive": True,
        "move_environment": "test-publish",
    },
    "devnet": {"rpc_url": "https://fullnode.devnet.sui.io:443"},
    "testnet": {"rpc_url": "https://fullnode.testnet.sui.io:443"},
    "mainnet": {"rpc_url": "https://fullnode.mainnet.sui.io:443"},
}

ENV_NETWORK = "SUI_NETWORK"
ENV_RPC_URL = "SUI_RPC_URL"
ENV_ACCOUNT_ADDRESS = "SUI_ACCOUNT_ADDRESS"
ENV_KEYSTORE_PATH = "SUI_KEYSTORE_PATH"
ENV_ARTIFACTS_DIR = "SUI_ARTIFACTS_DIR"
ENV_GAS_BUDGET = "SUI_GAS_BUDGET"
ENV_CLI_PATH = "SUI_CLI_PATH"


class NetworkConfig(BaseModel):
    name: str
    rpc_url: str
    permissive: bool = False
    move_environment: Optional[str] = Field(
        default=None, description="Environment name used in Move.toml [environments]; defaults to the network name."
    )
    gas_budget: int = DEFAULT_GAS_BUDGET
    account_address: Optional[str] = None
    keystore_path: Optional[str] = None
    dependency_addresses: Dict[str, str] = Field(default_factory=dict)
    dependency_objects: Dict[str, str] = Field(
        default_factory=dict, description="Dependency name to an object id whose type reveals the package id."
    )

    model_config = ConfigDict(extra="forbid")

    @property
    def manifest_environment(self) -> str:
        return self.move_environment or self.name

    @property
    def is_mainnet(self) -> bool:
        return self.name == "mainnet"


class DeployConfig(BaseModel):
    default_network: str = PERMISSIVE_NETWORK
    networks: Dict[str, NetworkConfig] = Field(default_factory=dict)
    move_root: Path = Path("move")
    artifacts_dir: Optional[Path] = None
    toolchain: str = "sui"
    toolchain_timeout: Optional[float] = None

    model_config = ConfigDict(extra="forbid")

    def network(self, name: Optional[str] = None) -> NetworkConfig:
        target = name or self.default_network
        try:
            return self.networks[target]
        except KeyError:
            known = ", ".join(sorted(self.networks)) or "none"
            raise ConfigurationError(f"Unknown network '{target}'. Configured networks: {known}.") from None


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid configuration at {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Configuration at {path} must be a mapping.")
    return payload


def _merge_networks(raw_networks: Any) -> Dict[str, Dict[str, Any]]:
    if not isinstance(raw_networks, Mapping):
        raise ConfigurationError("'networks' must be a mapping of network name to settings.")
    merged: Dict[str, Dict[str, Any]] = {name: dict(values) for name, values in BUILTIN_NETWORKS.items()}
    for name, values in raw_networks.items():
        if values is None:
            values = {}
        if not isinstance(values, dict):
            raise ConfigurationError(f"Network '{name}' must be a mapping.")
        merged.setdefault(name, {}).update(values)
    for name, values in merged.items():
        values.setdefault("name", name)
        values.setdefault("permissive", name == PERMISSIVE_NETWORK)
    return merged


def _apply_env_overrides(payload: Dict[str, Any], env: Mapping[str, str]) -> None:
    if env.get(ENV_NETWORK):
        payload["default_network"] = env[ENV_NETWORK]
    if env.get(ENV_ARTIFACTS_DIR):
        payload["artifacts_dir"] = env[ENV_ARTIFACTS_DIR]
    if env.get(ENV_CLI_PATH):
        payload["toolchain"] = env[ENV_CLI_PATH]

    active = payload.get("default_network", PERMISSIVE_NETWORK)
    network = payload["networks"].setdefault(active, {"name": active, "permissive": False})
    if env.get(ENV_RPC_URL):
        network["rpc_url"] = env[ENV_RPC_URL]
    if env.get(ENV_ACCOUNT_ADDRESS):
        network["account_address"] = env[ENV_ACCOUNT_ADDRESS]
    if env.get(ENV_KEYSTORE_PATH):
        network["keystore_path"] = env[ENV_KEYSTORE_PATH]
    if env.get(ENV_GAS_BUDGET):
        try:
            network["gas_budget"] = int(env[ENV_GAS_BUDGET])
        except ValueError as exc:
            raise ConfigurationError(f"{ENV_GAS_BUDGET} must be an integer, got '{env[ENV_GAS_BUDGET]}'.") from exc


def load_config(path: Optional[Path] = None, *, env: Optional[Mapping[str, str]] = None) -> DeployConfig:
    """Load configuration from ``path`` (if present) layered with environment overrides."""

    payload: Dict[str, Any] = {}
    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        payload = _read_yaml(path)
    else:
        default_path = Path.cwd() / DEFAULT_CONFIG_FILENAME
        if default_path.exists():
            payload = _read_yaml(default_path)

    payload["networks"] = _merge_networks(payload.get("networks") or {})
    _apply_env_overrides(payload, os.environ if env is None else env)

    try:
        return DeployConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid deployment configuration: {exc}") from exc


__all__ = [
    "BUILTIN_NETWORKS",
    "DEFAULT_GAS_BUDGET",
    "DeployConfig",
    "NetworkConfig",
    "PERMISSIVE_NETWORK",
    "load_config",
]
