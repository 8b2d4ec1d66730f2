"""Publish strategies: a signed JSON-RPC transaction or ``sui client publish``."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from ..build.output import BuildOutput, parse_json_payload
from ..client import NetworkClient, PublishTransaction, Signer
from ..errors import BuildOutputError, ConfigurationError, ExecutionError, ToolchainError
from ..toolchain import ToolchainRunner, format_output_tail
from .effects import extract_publish_result, label_publish_result
from .models import PublishPlan, PublishResult, PublishStrategy

logger = logging.getLogger(__name__)

KEYSTORE_ENV = "SUI_KEYSTORE_PATH"
MISSING_KEYSTORE_WARNING = (
    "Publishing with unpublished dependencies via CLI but no keystore path override was provided; "
    "relying on the default Sui CLI keystore (set SUI_KEYSTORE_PATH to override)."
)


def _execution_status(payload: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    effects = payload.get("effects")
    if not isinstance(effects, Mapping):
        return None
    status = effects.get("status")
    return status if isinstance(status, Mapping) else None


class PublishExecutor(ABC):
    strategy: PublishStrategy

    @abstractmethod
    def publish(self, plan: PublishPlan, build_output: BuildOutput) -> PublishResult:
        ...


class SdkPublishExecutor(PublishExecutor):
    """Build, sign and submit the publish transaction through the network client."""

    strategy = PublishStrategy.SDK

    def __init__(self, client: NetworkClient, signer: Signer) -> None:
        self.client = client
        self.signer = signer

    def publish(self, plan: PublishPlan, build_output: BuildOutput) -> PublishResult:
        transaction = PublishTransaction(
            sender=plan.sender,
            modules=list(build_output.modules),
            dependencies=list(build_output.dependencies),
            gas_budget=plan.gas_budget,
        )
        logger.info("Submitting publish transaction for %s (%d modules).", plan.package_path, len(transaction.modules))
        response = self.client.sign_and_submit(transaction, self.signer)
        if response.status != "success":
            raise ExecutionError(f"Publish failed: {response.error or 'unknown error'}")

        result = extract_publish_result(response.object_changes, response.digest)
        if not result.packages:
            raise ExecutionError("Publish succeeded but no packageId was returned.")
        return label_publish_result(result, plan.package_names)


class CliPublishExecutor(PublishExecutor):
    """Shell out to ``sui client publish --json`` and parse its transaction response."""

    strategy = PublishStrategy.CLI

    def __init__(self, runner: ToolchainRunner) -> None:
        self.runner = runner

    def build_arguments(self, plan: PublishPlan) -> List[str]:
        args = [
            str(plan.package_path),
            "--json",
            "--gas-budget",
            str(plan.gas_budget),
            "--skip-fetch-latest-git-deps",
            "--sender",
            plan.sender,
        ]
        if plan.use_dev_build:
            args.append("--dev")
        if plan.should_use_unpublished_dependencies:
            args.append("--with-unpublished-dependencies")
        return args

    def build_env(self, plan: PublishPlan) -> Dict[str, str]:
        if plan.keystore_path:
            return {KEYSTORE_ENV: plan.keystore_path}
        return {}

    def publish(self, plan: PublishPlan, build_output: BuildOutput) -> PublishResult:
        if plan.should_use_unpublished_dependencies and not plan.keystore_path:
            logger.warning(MISSING_KEYSTORE_WARNING)

        result = self.runner.with_prefix("client", "publish").run(
            self.build_arguments(plan),
            env=self.build_env(plan),
        )
        if result.spawn_error:
            raise ToolchainError(f"Failed to start Sui CLI publish: {result.spawn_error}")
        if result.stderr.strip():
            logger.warning(result.stderr.strip())
        if result.exit_code != 0:
            raise ToolchainError(
                f"Sui CLI publish exited with code {result.exit_code}."
                f"{format_output_tail(result.stdout, result.stderr)}"
            )

        payload = parse_json_payload(result.stdout)
        if not isinstance(payload, Mapping):
            raise BuildOutputError(
                f"Failed to parse JSON from Sui CLI publish output.{format_output_tail(result.stdout)}"
            )

        status = _execution_status(payload)
        if status is not None and status.get("status") not in (None, "success"):
            raise ExecutionError(f"Publish failed: {status.get('error') or 'unknown error'}")

        extracted = extract_publish_result(payload.get("objectChanges"), str(payload.get("digest") or ""))
        if not extracted.packages:
            raise ExecutionError("Publish succeeded but no packageId was returned.")
        return label_publish_result(extracted, plan.package_names)


def build_executor(
    strategy: PublishStrategy,
    *,
    runner: Optional[ToolchainRunner] = None,
    client: Optional[NetworkClient] = None,
    signer: Optional[Signer] = None,
) -> PublishExecutor:
    if strategy == PublishStrategy.CLI:
        return CliPublishExecutor(runner or ToolchainRunner())
    if strategy == PublishStrategy.SDK:
        if client is None or signer is None:
            raise ConfigurationError("SDK publish requires a network client and a signer.")
        return SdkPublishExecutor(client, signer)
    raise ConfigurationError(f"Unknown publish strategy '{strategy}'")


__all__ = [
    "CliPublishExecutor",
    "MISSING_KEYSTORE_WARNING",
    "PublishExecutor",
    "SdkPublishExecutor",
    "build_executor",
]
