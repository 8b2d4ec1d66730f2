"""Resolve a publish request into an immutable :class:`PublishPlan`."""

from __future__ import annotations

import concurrent.futures
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..client import NetworkClient, package_id_from_type
from ..config import NetworkConfig
from ..consistency import check_framework_consistency
from ..errors import ConfigurationError
from ..lock.manifest import manifest_path, read_package_name
from ..lock.move_lock import (
    filter_addresses,
    find_unpublished_dependencies,
    normalize_dependency_id,
    parse_published_addresses,
    read_lock,
    resolve_allowed_dependency_ids,
    update_published_addresses,
    write_lock,
)
from ..toolchain import ToolchainRunner, get_toolchain_version
from .models import PackageNames, PublishPlan, PublishRequest, PublishStrategy

logger = logging.getLogger(__name__)

DEV_BUILD_ERROR = "Dev builds are limited to localnet. Remove --dev when publishing to shared networks."
UNPUBLISHED_FLAG_ERROR = (
    "--with-unpublished-dependencies is reserved for localnet. "
    "Link to published packages in Move.lock for shared networks."
)
MAX_LOOKUP_WORKERS = 8


def build_move_build_flags(
    *,
    permissive: bool,
    use_dev_build: bool = False,
    with_unpublished_dependencies: bool = False,
    allow_auto_unpublished_dependencies: bool = False,
    skip_fetch_latest_git_deps: bool = True,
) -> Tuple[str, ...]:
    flags: List[str] = ["--dump-bytecode-as-base64"]
    if skip_fetch_latest_git_deps:
        flags.append("--skip-fetch-latest-git-deps")
    if use_dev_build:
        flags.extend(["--dev", "--test"])
    if with_unpublished_dependencies:
        flags.append("--with-unpublished-dependencies")
    if permissive or (allow_auto_unpublished_dependencies and use_dev_build):
        flags.append("--ignore-chain")
    return tuple(flags)


def should_skip_consistency(network: NetworkConfig, *, use_dev_build: bool, allow_implicit: bool) -> bool:
    return network.permissive or use_dev_build or allow_implicit


def _lookup_dependency_package(client: NetworkClient, name: str, object_id: str) -> Tuple[str, str]:
    payload = client.get_object(object_id)
    if payload is None:
        raise ConfigurationError(f"Dependency object {object_id} for {name} was not found on chain.")
    package_id = package_id_from_type(payload.get("type"))
    if not package_id:
        raise ConfigurationError(f"Dependency object {object_id} for {name} did not return a package type.")
    return name, package_id


def resolve_dependency_addresses(
    network: NetworkConfig,
    lock_contents: str,
    client: Optional[NetworkClient] = None,
) -> Dict[str, str]:
    """Configured dependency addresses plus those derived from on-chain object types.

    Only dependencies reachable from the root package are considered. Object
    lookups run concurrently and are joined before returning.
    """

    allowed = resolve_allowed_dependency_ids(lock_contents, network.manifest_environment)
    addresses = filter_addresses(network.dependency_addresses, allowed)
    known = {normalize_dependency_id(name) for name in addresses}
    pending = [
        (name, object_id)
        for name, object_id in filter_addresses(network.dependency_objects, allowed).items()
        if normalize_dependency_id(name) not in known
    ]
    if not pending:
        return addresses
    if client is None:
        logger.warning(
            "Skipping on-chain lookup for %s; no network client available.",
            ", ".join(name for name, _ in pending),
        )
        return addresses

    with concurrent.futures.ThreadPoolExecutor(max_workers=min(MAX_LOOKUP_WORKERS, len(pending))) as pool:
        for name, package_id in pool.map(lambda item: _lookup_dependency_package(client, *item), pending):
            addresses[name] = package_id
    return addresses


def sync_lock_addresses(
    package_path: Path,
    network: NetworkConfig,
    lock_contents: str,
    client: Optional[NetworkClient] = None,
) -> Tuple[str, List[str]]:
    """Write known dependency addresses into Move.lock; returns the new contents and updated names."""

    addresses = resolve_dependency_addresses(network, lock_contents, client)
    update = update_published_addresses(lock_contents, addresses, network.manifest_environment)
    if update.changed:
        write_lock(package_path, update.contents)
        logger.info(
            "Updated Move.lock published addresses for %s: %s",
            network.name,
            ", ".join(update.updated_dependencies),
        )
    return update.contents, list(update.updated_dependencies)


def _missing_lock_message(package_path: Path) -> str:
    return "\n".join(
        [
            f"Move.lock not found for {package_path}.",
            "Publishing to shared networks requires a Move.lock that pins dependency addresses to deployed packages.",
            "Run `sui move build --skip-fetch-latest-git-deps` against the intended dependency set "
            "or copy an existing Move.lock before publishing.",
        ]
    )


def _unpublished_message(package_path: Path, unpublished: Sequence[str]) -> str:
    return "\n".join(
        [
            f"Unpublished dependencies detected for {package_path}: {', '.join(unpublished)}.",
            "Publishing to shared networks requires linking to already deployed packages.",
            "Add published addresses to Move.lock (or pass --with-unpublished-dependencies only on localnet) "
            "before publishing.",
        ]
    )


def _implicit_reason(lock_missing: bool, unpublished: Sequence[str]) -> str:
    if lock_missing:
        return "Move.lock missing; cannot resolve published dependency addresses"
    return f"unpublished packages: {', '.join(unpublished)}"


def build_publish_plan(
    request: PublishRequest,
    network: NetworkConfig,
    *,
    runner: ToolchainRunner,
    client: Optional[NetworkClient] = None,
) -> PublishPlan:
    """Validate the request against the network and decide how the package is built and published.

    Raises :class:`ConfigurationError` for illegal flag combinations and
    :class:`ConsistencyError` for framework drift on strict networks, both before
    any toolchain process is started.
    """

    package_path = Path(request.package_path).resolve()
    if not manifest_path(package_path).exists():
        raise ConfigurationError(f"Move.toml not found at {package_path}.")

    permissive = network.permissive
    if request.use_dev_build and not permissive:
        raise ConfigurationError(DEV_BUILD_ERROR)
    if request.with_unpublished_dependencies and not permissive:
        raise ConfigurationError(UNPUBLISHED_FLAG_ERROR)

    sender = request.sender or network.account_address
    if not sender:
        raise ConfigurationError(
            f"No sender address configured for {network.name}. "
            "Set account_address in the network config or SUI_ACCOUNT_ADDRESS."
        )

    allow_auto = (
        request.allow_auto_unpublished_dependencies
        if request.allow_auto_unpublished_dependencies is not None
        else permissive
    )
    allow_implicit = allow_auto if permissive else False
    explicit = request.with_unpublished_dependencies
    environment = network.manifest_environment
    warnings: List[str] = []

    lock_contents = read_lock(package_path)
    lock_missing = lock_contents is None
    updated_lock_dependencies: List[str] = []
    if lock_contents is not None and not permissive:
        lock_contents, updated_lock_dependencies = sync_lock_addresses(package_path, network, lock_contents, client)

    unpublished = find_unpublished_dependencies(lock_contents, environment) if lock_contents else []

    if lock_missing and not allow_implicit and not explicit:
        raise ConfigurationError(_missing_lock_message(package_path))

    should_use_unpublished = explicit or (allow_implicit and (bool(unpublished) or lock_missing))
    if unpublished and not should_use_unpublished:
        raise ConfigurationError(_unpublished_message(package_path, unpublished))

    if should_use_unpublished and not explicit:
        message = (
            f"Enabling --with-unpublished-dependencies for {package_path} "
            f"({_implicit_reason(lock_missing, unpublished)})."
        )
        logger.warning(message)
        warnings.append(message)

    if not should_skip_consistency(network, use_dev_build=request.use_dev_build, allow_implicit=allow_implicit):
        check_framework_consistency(package_path, environment=environment, mode="error")

    build_flags = build_move_build_flags(
        permissive=permissive,
        use_dev_build=request.use_dev_build,
        with_unpublished_dependencies=should_use_unpublished,
        allow_auto_unpublished_dependencies=allow_auto,
        skip_fetch_latest_git_deps=request.skip_fetch_latest_git_deps,
    )
    strategy = request.strategy or (PublishStrategy.SDK if request.use_dev_build else PublishStrategy.CLI)

    return PublishPlan(
        network=network,
        package_path=package_path,
        sender=sender,
        gas_budget=request.gas_budget or network.gas_budget,
        strategy=strategy,
        should_use_unpublished_dependencies=should_use_unpublished,
        unpublished_dependencies=tuple(unpublished),
        build_flags=build_flags,
        package_names=PackageNames(root=read_package_name(package_path), dependencies=tuple(unpublished)),
        dependency_addresses_from_lock=parse_published_addresses(lock_contents, environment),
        keystore_path=request.keystore_path or network.keystore_path,
        use_dev_build=request.use_dev_build,
        allow_auto_unpublished_dependencies=allow_auto,
        toolchain_version=get_toolchain_version(runner),
        updated_lock_dependencies=tuple(updated_lock_dependencies),
        warnings=tuple(warnings),
    )


__all__ = [
    "DEV_BUILD_ERROR",
    "UNPUBLISHED_FLAG_ERROR",
    "build_move_build_flags",
    "build_publish_plan",
    "resolve_dependency_addresses",
    "should_skip_consistency",
    "sync_lock_addresses",
]
