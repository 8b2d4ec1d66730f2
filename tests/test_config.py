from __future__ import annotations

from pathlib import Path

import pytest

from move_publish.config import DEFAULT_GAS_BUDGET, load_config
from move_publish.errors import ConfigurationError


def test_builtin_networks_without_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = load_config(env={})

    assert config.default_network == "localnet"
    assert set(config.networks) == {"localnet", "devnet", "testnet", "mainnet"}
    localnet = config.network()
    assert localnet.permissive is True
    assert localnet.manifest_environment == "test-publish"
    testnet = config.network("testnet")
    assert testnet.permissive is False
    assert testnet.manifest_environment == "testnet"
    assert testnet.gas_budget == DEFAULT_GAS_BUDGET
    assert config.network("mainnet").is_mainnet is True


def test_yaml_is_layered_with_environment(tmp_path: Path) -> None:
    path = tmp_path / "move-publish.yaml"
    path.write_text(
        "default_network: testnet\n"
        "artifacts_dir: out\n"
        "networks:\n"
        "  testnet:\n"
        "    gas_budget: 5000\n"
        "    dependency_addresses:\n"
        "      pricing: '0xabc'\n"
        "  staging:\n"
        "    rpc_url: https://staging.example.com\n",
        encoding="utf-8",
    )

    config = load_config(
        path,
        env={"SUI_ACCOUNT_ADDRESS": "0x5e", "SUI_RPC_URL": "https://rpc.example.com", "SUI_CLI_PATH": "/opt/sui"},
    )

    testnet = config.network()
    assert testnet.name == "testnet"
    assert testnet.gas_budget == 5000
    assert testnet.account_address == "0x5e"
    assert testnet.rpc_url == "https://rpc.example.com"
    assert testnet.dependency_addresses == {"pricing": "0xabc"}
    assert config.toolchain == "/opt/sui"
    assert config.artifacts_dir == Path("out")
    assert config.network("staging").permissive is False
    assert config.network("devnet").account_address is None


def test_network_override_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = load_config(env={"SUI_NETWORK": "devnet", "SUI_GAS_BUDGET": "42"})
    assert config.default_network == "devnet"
    assert config.network().gas_budget == 42


def test_unknown_network_lists_known_ones(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    config = load_config(env={})
    with pytest.raises(ConfigurationError, match="Unknown network 'betanet'"):
        config.network("betanet")


@pytest.mark.parametrize(
    ("contents", "env", "message"),
    [
        ("networks: [1, 2]\n", {}, "must be a mapping"),
        ("- just\n- a list\n", {}, "must be a mapping"),
        ("networks:\n  testnet:\n    unknown_key: 1\n", {}, "Invalid deployment configuration"),
        ("networks: {testnet: {rpc_url: x}\n", {}, "Invalid configuration"),
        ("", {"SUI_GAS_BUDGET": "lots"}, "SUI_GAS_BUDGET must be an integer"),
    ],
)
def test_invalid_configuration(tmp_path: Path, contents: str, env: dict, message: str) -> None:
    path = tmp_path / "move-publish.yaml"
    path.write_text(contents, encoding="utf-8")
    with pytest.raises(ConfigurationError, match=message):
        load_config(path, env=env)


def test_missing_explicit_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="not found"):
        load_config(tmp_path / "absent.yaml", env={})
