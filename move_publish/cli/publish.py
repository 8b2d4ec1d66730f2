"""Command-line entry point for building and publishing Move packages."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Mapping, Optional, Sequence

from dotenv import load_dotenv

from move_publish.build.builder import build_move_package
from move_publish.client import KeytoolSigner, SuiJsonRpcClient
from move_publish.config import DeployConfig, NetworkConfig, load_config
from move_publish.consistency import CHECK_MODES, check_framework_consistency
from move_publish.deployments import ArtifactStore
from move_publish.errors import DeployError
from move_publish.publish import (
    PublishRequest,
    PublishStrategy,
    build_move_build_flags,
    publish_package,
    sync_network_environment,
)
from move_publish.toolchain import ToolchainRunner


def _load_local_env() -> None:
    """Best-effort load of a working-directory .env for convenience."""

    env_file = Path.cwd() / ".env"
    if env_file.exists():
        load_dotenv(env_file)


def main(argv: Optional[Sequence[str]] = None) -> int:
    _load_local_env()
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(Path(args.config) if args.config else None)
        if args.command == "publish":
            return _handle_publish(args, config)
        if args.command == "build":
            return _handle_build(args, config)
        if args.command == "check":
            return _handle_check(args, config)
        if args.command == "sync-env":
            return _handle_sync_env(args, config)
        if args.command == "deployments":
            return _handle_deployments(args, config)
    except DeployError as exc:
        _print_json({"error": str(exc), "type": type(exc).__name__})
        return 1

    parser.error(f"Unknown command '{args.command}'")
    return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="move-publish", description="Build and publish Sui Move packages.")
    parser.add_argument("--config", help="Path to move-publish.yaml (defaults to ./move-publish.yaml when present).")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    subparsers = parser.add_subparsers(dest="command", required=True)

    publish = subparsers.add_parser("publish", help="Build and publish a Move package.")
    publish.add_argument("--network")
    publish.add_argument("--package-path", required=True)
    publish.add_argument("--re-publish", action="store_true")
    publish.add_argument("--dev", action="store_true", help="Dev build (localnet only).")
    publish.add_argument("--with-unpublished-dependencies", action="store_true")
    publish.add_argument(
        "--allow-auto-unpublished-dependencies",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable unpublished-dependency mode automatically on localnet when required.",
    )
    publish.add_argument("--strategy", choices=[strategy.value for strategy in PublishStrategy])
    publish.add_argument("--gas-budget", type=int)
    publish.add_argument("--sender")
    publish.add_argument("--keystore-path")
    publish.add_argument("--sync-env", action=argparse.BooleanOptionalAction, default=True)

    build = subparsers.add_parser("build", help="Build a Move package and print its compiled output.")
    build.add_argument("--network")
    build.add_argument("--package-path", required=True)
    build.add_argument("--strip-test-modules", action="store_true")
    build.add_argument("--dev", action="store_true")
    build.add_argument("--with-unpublished-dependencies", action="store_true")

    check = subparsers.add_parser("check", help="Check framework revision consistency.")
    check.add_argument("--network")
    check.add_argument("--package-path", required=True)
    check.add_argument("--mode", choices=list(CHECK_MODES), default="error")

    sync_env = subparsers.add_parser("sync-env", help="Sync a chain id into Move.toml [environments].")
    sync_env.add_argument("--network")
    sync_env.add_argument("--chain-id")

    deployments = subparsers.add_parser("deployments", help="List recorded deployments for a network.")
    deployments.add_argument("--network")
    deployments.add_argument("--package-path")

    return parser


def _runner(config: DeployConfig) -> ToolchainRunner:
    return ToolchainRunner(config.toolchain, timeout=config.toolchain_timeout)


def _handle_publish(args: argparse.Namespace, config: DeployConfig) -> int:
    network = config.network(args.network)
    runner = _runner(config)
    sender = args.sender or network.account_address
    keystore_path = args.keystore_path or network.keystore_path
    client = SuiJsonRpcClient(network.rpc_url)
    signer = KeytoolSigner(sender, runner, keystore_path=keystore_path) if sender else None

    request = PublishRequest(
        package_path=Path(args.package_path),
        network=network.name,
        strategy=PublishStrategy(args.strategy) if args.strategy else None,
        use_dev_build=args.dev,
        with_unpublished_dependencies=args.with_unpublished_dependencies,
        allow_auto_unpublished_dependencies=args.allow_auto_unpublished_dependencies,
        re_publish=args.re_publish,
        gas_budget=args.gas_budget,
        sender=sender,
        keystore_path=keystore_path,
        sync_environment=args.sync_env,
    )
    outcome = publish_package(
        request,
        config=config,
        runner=runner,
        client=client,
        signer=signer,
        store=ArtifactStore(config.artifacts_dir),
    )
    _print_json(outcome.to_dict())
    return 0


def _handle_build(args: argparse.Namespace, config: DeployConfig) -> int:
    network: NetworkConfig = config.network(args.network)
    flags = build_move_build_flags(
        permissive=network.permissive,
        use_dev_build=args.dev,
        with_unpublished_dependencies=args.with_unpublished_dependencies,
    )
    output = build_move_package(
        Path(args.package_path),
        flags,
        runner=_runner(config),
        strip_test_modules=args.strip_test_modules,
    )
    payload = {
        "package_path": str(Path(args.package_path).resolve()),
        "build_flags": list(flags),
        "modules": output.modules,
        "dependencies": output.dependencies,
        "dependency_addresses": output.dependency_addresses,
    }
    _print_json(payload)
    return 0


def _handle_check(args: argparse.Namespace, config: DeployConfig) -> int:
    environment = config.network(args.network).manifest_environment if args.network else None
    report = check_framework_consistency(Path(args.package_path), environment=environment, mode=args.mode)
    _print_json(report.to_dict())
    return 0


def _handle_sync_env(args: argparse.Namespace, config: DeployConfig) -> int:
    network = config.network(args.network)
    client = None if args.chain_id else SuiJsonRpcClient(network.rpc_url)
    result = sync_network_environment(
        config,
        network,
        runner=_runner(config),
        client=client,
        chain_id=args.chain_id,
    )
    payload = {
        "network": network.name,
        "environment": result.environment,
        "chain_id": result.chain_id,
        "updated_files": [str(path) for path in result.updated_files],
        "warnings": result.warnings,
    }
    _print_json(payload)
    return 0


def _handle_deployments(args: argparse.Namespace, config: DeployConfig) -> int:
    network = config.network(args.network)
    store = ArtifactStore(config.artifacts_dir)
    records = store.load(network.name)
    if args.package_path:
        package_path = str(Path(args.package_path).resolve())
        records = [record for record in records if record.package_path in (package_path, f"{package_path}#dependency")]
    payload = {
        "network": network.name,
        "path": str(store.path_for(network.name)),
        "records": [record.to_record() for record in records],
    }
    _print_json(payload)
    return 0


def _print_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, indent=2, default=str))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
