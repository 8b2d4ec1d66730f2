"""Publish workflow for Move packages."""

from .executors import CliPublishExecutor, PublishExecutor, SdkPublishExecutor, build_executor
from .models import (
    PackageNames,
    PublishedPackage,
    PublishOutcome,
    PublishPlan,
    PublishRequest,
    PublishResult,
    PublishStrategy,
)
from .plan import build_move_build_flags, build_publish_plan
from .publish import execute_with_retry, publish_package, sync_network_environment

__all__ = [
    "CliPublishExecutor",
    "PackageNames",
    "PublishExecutor",
    "PublishOutcome",
    "PublishPlan",
    "PublishRequest",
    "PublishResult",
    "PublishStrategy",
    "PublishedPackage",
    "SdkPublishExecutor",
    "build_executor",
    "build_move_build_flags",
    "build_publish_plan",
    "execute_with_retry",
    "publish_package",
    "sync_network_environment",
]
