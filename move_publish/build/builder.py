"""Run ``sui move build`` and resolve its output into a :class:`BuildOutput`."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..errors import BuildOutputError
from ..toolchain import ToolchainRunner, format_output_tail
from .artifacts import (
    BuildArtifacts,
    build_dir_for,
    is_test_module_bytecode,
    read_build_artifacts,
    read_dependency_addresses,
)
from .output import BuildOutput, parse_build_streams

logger = logging.getLogger(__name__)

INSTALL_DIR_FLAG = "--install-dir"


def _ensure_install_dir(flags: Sequence[str], package_path: Path) -> List[str]:
    resolved = list(flags)
    if any(flag == INSTALL_DIR_FLAG or flag.startswith(f"{INSTALL_DIR_FLAG}=") for flag in resolved):
        return resolved
    return [*resolved, INSTALL_DIR_FLAG, str(package_path)]


def _code_suffix(exit_code: Optional[int]) -> str:
    return f" (exit code {exit_code})" if exit_code is not None else ""


def resolve_build_output(
    stdout: str,
    stderr: str,
    package_path: Path,
    *,
    exit_code: Optional[int] = None,
    strip_test_modules: bool = False,
) -> BuildOutput:
    """Combine parsed build JSON with on-disk artifacts.

    The disk fallback is read when test modules must be stripped or when JSON is
    missing modules or dependencies. Dependency addresses come from BuildInfo.yaml
    whenever it exists.
    """

    package_path = Path(package_path)
    parsed = parse_build_streams(stdout, stderr)
    parsed_modules = parsed.modules if parsed else []
    parsed_dependencies = parsed.dependencies if parsed else []

    fallback: Optional[BuildArtifacts] = None
    if strip_test_modules or not parsed_modules or not parsed_dependencies:
        try:
            fallback = read_build_artifacts(package_path, strip_test_modules=strip_test_modules)
        except FileNotFoundError as exc:
            if not parsed_modules:
                raise BuildOutputError(
                    f"Move build did not emit bytecode output{_code_suffix(exit_code)} and no build artifacts "
                    f"were found at {build_dir_for(package_path)}.{format_output_tail(stdout, stderr)}"
                ) from exc
            logger.debug("Build artifacts unavailable (%s); using JSON output only.", exc)

    if not parsed_modules and fallback is not None:
        logger.warning("Build JSON contained no modules; using compiled artifacts from build/ instead.")
    elif strip_test_modules and fallback is not None and fallback.modules:
        logger.warning("Using compiled artifacts to strip test modules (BuildInfo.yaml).")

    if strip_test_modules:
        if fallback is not None and fallback.modules:
            modules = fallback.modules
        else:
            modules = [module for module in parsed_modules if not is_test_module_bytecode(module)]
    else:
        modules = parsed_modules or (fallback.modules if fallback else [])

    dependencies = parsed_dependencies or (fallback.dependencies if fallback else [])
    if fallback is not None:
        dependency_addresses: Dict[str, str] = dict(fallback.dependency_addresses)
    else:
        dependency_addresses = read_dependency_addresses(package_path)

    if not modules:
        raise BuildOutputError(
            f"Unexpected build output{_code_suffix(exit_code)}: no modules left to publish from "
            f"{build_dir_for(package_path)}. Ensure the package builds correctly."
            f"{format_output_tail(stdout, stderr)}"
        )

    return BuildOutput(
        modules=list(modules),
        dependencies=list(dependencies),
        dependency_addresses=dependency_addresses,
    )


def build_move_package(
    package_path: Path,
    flags: Sequence[str] = (),
    *,
    runner: Optional[ToolchainRunner] = None,
    strip_test_modules: bool = False,
) -> BuildOutput:
    """Build a Move package and return its compiled modules and dependency metadata."""

    package_path = Path(package_path).resolve()
    build_runner = (runner or ToolchainRunner()).with_prefix("move", "build")
    args = ["--path", str(package_path), *_ensure_install_dir(flags, package_path)]
    result = build_runner.run(args)

    if result.spawn_error:
        logger.warning("Failed to start sui move build: %s", result.spawn_error)
    elif result.stderr.strip():
        logger.warning(result.stderr.strip())

    output = resolve_build_output(
        result.stdout,
        result.stderr,
        package_path,
        exit_code=result.exit_code,
        strip_test_modules=strip_test_modules,
    )

    if result.exit_code not in (None, 0):
        logger.warning(
            "sui move build returned non-zero exit code (%s) but build output was resolved.",
            result.exit_code,
        )
    return output


__all__ = ["build_move_package", "resolve_build_output"]
