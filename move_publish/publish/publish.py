"""High-level publish workflow."""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import List, Optional, Tuple

from ..build.builder import build_move_package
from ..build.output import BuildOutput
from ..client import NetworkClient, Signer
from ..config import DeployConfig, NetworkConfig
from ..deployments import ArtifactStore
from ..errors import DeployError
from ..lock.manifest import EnvironmentSyncResult, sync_environment_chain_id
from ..lock.published import clear_published_entry
from ..schemas.deployment import PublishArtifact
from ..toolchain import ToolchainRunner, get_environment_chain_id
from .effects import build_explorer_url, is_size_limit_error, merge_dependency_addresses
from .executors import build_executor
from .models import PublishOutcome, PublishPlan, PublishRequest, PublishResult, PublishStrategy
from .plan import build_publish_plan

logger = logging.getLogger(__name__)

RETRY_WARNING = (
    "SDK publish exceeded transaction limits; retrying with Sui CLI publish "
    "(handles unpublished dependencies natively)."
)


def sync_network_environment(
    config: DeployConfig,
    network: NetworkConfig,
    *,
    runner: ToolchainRunner,
    client: Optional[NetworkClient] = None,
    chain_id: Optional[str] = None,
) -> EnvironmentSyncResult:
    """Point every managed Move.toml under the move root at the network's chain id.

    Never raises for lookup or write failures; they are returned as warnings.
    """

    environment = network.manifest_environment
    warnings: List[str] = []
    if not chain_id and client is not None:
        try:
            chain_id = client.get_chain_identifier()
        except DeployError as exc:
            warnings.append(f"Failed to read chain identifier from {network.rpc_url}: {exc}")
    if not chain_id:
        chain_id = get_environment_chain_id(runner)
    if not chain_id:
        warnings.append(f"Unable to resolve a chain id for {network.name}; skipping Move.toml environment sync.")
        for message in warnings:
            logger.warning(message)
        return EnvironmentSyncResult(environment=environment, warnings=warnings)

    result = sync_environment_chain_id(config.move_root, environment, chain_id)
    for message in warnings:
        logger.warning(message)
    result.warnings[:0] = warnings
    if result.updated_files:
        logger.info("Synced %s chain id %s into %d Move.toml file(s).", environment, chain_id, len(result.updated_files))
    return result


def execute_with_retry(
    plan: PublishPlan,
    build_output: BuildOutput,
    *,
    runner: ToolchainRunner,
    client: Optional[NetworkClient] = None,
    signer: Optional[Signer] = None,
) -> Tuple[PublishResult, PublishPlan, bool]:
    """Publish once and, only for a size-limited SDK attempt, once more through the CLI.

    Returns the result, the plan that produced it and whether the retry was taken.
    """

    executor = build_executor(plan.strategy, runner=runner, client=client, signer=signer)
    try:
        return executor.publish(plan, build_output), plan, False
    except DeployError as exc:
        if plan.strategy != PublishStrategy.SDK or not is_size_limit_error(exc):
            raise
        logger.warning(RETRY_WARNING)

    retry_plan = dataclasses.replace(plan, strategy=PublishStrategy.CLI)
    retry_executor = build_executor(retry_plan.strategy, runner=runner)
    return retry_executor.publish(retry_plan, build_output), retry_plan, True


def build_artifacts(
    plan: PublishPlan,
    result: PublishResult,
    build_output: BuildOutput,
    request: PublishRequest,
) -> List[PublishArtifact]:
    dependency_addresses = merge_dependency_addresses(plan.dependency_addresses_from_lock, result.packages)
    explorer_url = build_explorer_url(result.digest, plan.network_name)
    package_path = str(plan.package_path)
    artifacts: List[PublishArtifact] = []
    for pkg in result.packages:
        artifacts.append(
            PublishArtifact(
                network=plan.network_name,
                rpc_url=plan.rpc_url,
                package_path=f"{package_path}#dependency" if pkg.is_dependency else package_path,
                package_name=pkg.package_name,
                package_id=pkg.package_id,
                upgrade_cap=pkg.upgrade_cap_id,
                publisher_id=pkg.publisher_id,
                is_dependency=pkg.is_dependency,
                sender=plan.sender,
                digest=result.digest,
                published_at=request.published_at,
                modules=[] if pkg.is_dependency else list(build_output.modules),
                dependencies=[] if pkg.is_dependency else list(build_output.dependencies),
                dependency_addresses=dependency_addresses,
                with_unpublished_dependencies=plan.should_use_unpublished_dependencies,
                unpublished_dependencies=list(plan.unpublished_dependencies),
                sui_cli_version=plan.toolchain_version,
                explorer_url=explorer_url,
            )
        )
    return artifacts


def _skip_if_published(
    request: PublishRequest,
    network: NetworkConfig,
    package_path: Path,
    store: ArtifactStore,
    client: Optional[NetworkClient],
) -> Optional[PublishOutcome]:
    existing = store.latest(network.name, str(package_path))
    if existing is None or client is None:
        return None
    if client.get_object(existing.package_id) is None:
        logger.info("Recorded package %s no longer exists on %s; publishing again.", existing.package_id, network.name)
        return None
    return PublishOutcome(
        status="skipped",
        network=network.name,
        package_path=package_path,
        artifacts=[existing],
        artifact_path=store.path_for(network.name),
        digest=existing.digest,
        logs=[f"Package already published on {network.name} at {existing.package_id}; skipping."],
        next_steps=["Pass --re-publish to publish a fresh copy."],
    )


def publish_package(
    request: PublishRequest,
    *,
    config: DeployConfig,
    runner: Optional[ToolchainRunner] = None,
    client: Optional[NetworkClient] = None,
    signer: Optional[Signer] = None,
    store: Optional[ArtifactStore] = None,
) -> PublishOutcome:
    """Plan, build, publish and record a Move package on one network."""

    network = config.network(request.network)
    runner = runner or ToolchainRunner(config.toolchain, timeout=config.toolchain_timeout)
    store = store or ArtifactStore(config.artifacts_dir)
    package_path = Path(request.package_path).resolve()
    logs: List[str] = []

    if request.re_publish:
        published_path, cleared = clear_published_entry(package_path, network.name, permissive=network.permissive)
        if cleared:
            logs.append(f"Cleared {network.name} entries from {published_path}.")
    else:
        skipped = _skip_if_published(request, network, package_path, store, client)
        if skipped is not None:
            logger.info(skipped.logs[0])
            return skipped

    plan = build_publish_plan(request, network, runner=runner, client=client)
    warnings = list(plan.warnings)
    if plan.updated_lock_dependencies:
        logs.append(f"Updated Move.lock published addresses: {', '.join(plan.updated_lock_dependencies)}.")

    updated_manifests: List[Path] = []
    if network.permissive and request.sync_environment:
        sync_result = sync_network_environment(config, network, runner=runner, client=client)
        updated_manifests = list(sync_result.updated_files)
        warnings.extend(sync_result.warnings)

    logger.info("Building %s for %s.", plan.package_path, network.name)
    build_output = build_move_package(
        plan.package_path,
        plan.build_flags,
        runner=runner,
        strip_test_modules=plan.strip_test_modules,
    )

    result, final_plan, retried = execute_with_retry(
        plan, build_output, runner=runner, client=client, signer=signer
    )
    if retried:
        warnings.append(RETRY_WARNING)
    warnings.extend(result.warnings)

    artifacts = build_artifacts(final_plan, result, build_output, request)
    artifact_path = store.append(network.name, artifacts)
    for artifact in artifacts:
        label = artifact.package_name or ("dependency" if artifact.is_dependency else "root package")
        logs.append(f"Published {label} at {artifact.package_id}.")
    logs.append(f"Deployment record written to {artifact_path}.")

    next_steps: List[str] = []
    if plan.updated_lock_dependencies or updated_manifests:
        next_steps.append("Commit the updated Move.lock / Move.toml files.")

    return PublishOutcome(
        status="published",
        network=network.name,
        package_path=plan.package_path,
        artifacts=artifacts,
        artifact_path=artifact_path,
        digest=result.digest,
        strategy=final_plan.strategy,
        retried=retried,
        updated_manifests=updated_manifests,
        updated_lock_dependencies=list(plan.updated_lock_dependencies),
        logs=logs,
        warnings=warnings,
        next_steps=next_steps,
        metadata={
            "published_at": request.published_at.isoformat(),
            "sender": plan.sender,
            "sui_cli_version": plan.toolchain_version,
            "build_flags": list(plan.build_flags),
            "explorer_url": artifacts[0].explorer_url if artifacts else None,
        },
    )


__all__ = [
    "RETRY_WARNING",
    "build_artifacts",
    "execute_with_retry",
    "publish_package",
    "sync_network_environment",
]
