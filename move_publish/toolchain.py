"""Subprocess wrapper around the Sui toolchain."""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Sequence

from .errors import ToolchainError, ToolchainTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "sui"
OUTPUT_TAIL_LINES = 20
OUTPUT_TAIL_MAX_CHARS = 2000

_VERSION_RE = re.compile(r"sui\s+([^\s]+)", re.IGNORECASE)


@dataclass(slots=True)
class ToolchainResult:
    stdout: str
    stderr: str
    exit_code: Optional[int]
    spawn_error: Optional[str] = None

    @property
    def spawned(self) -> bool:
        return self.spawn_error is None

    @property
    def ok(self) -> bool:
        return self.spawned and self.exit_code == 0


class ToolchainRunner:
    """Run ``<executable> <prefix...> <args...>`` and return captured output.

    Non-zero exits and spawn failures are reported through :class:`ToolchainResult`
    instead of raising. Only a timeout raises, since it is never retryable.
    """

    def __init__(
        self,
        executable: str = DEFAULT_EXECUTABLE,
        prefix: Sequence[str] = (),
        *,
        timeout: Optional[float] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.executable = executable
        self.prefix = tuple(prefix)
        self.timeout = timeout
        self.env: Dict[str, str] = dict(env or {})

    def with_prefix(self, *prefix: str) -> "ToolchainRunner":
        return ToolchainRunner(
            self.executable,
            (*self.prefix, *prefix),
            timeout=self.timeout,
            env=self.env,
        )

    def command(self, args: Iterable[str]) -> list[str]:
        return [self.executable, *self.prefix, *args]

    def run(
        self,
        args: Iterable[str] = (),
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> ToolchainResult:
        cmd = self.command(args)
        effective_timeout = timeout if timeout is not None else self.timeout
        merged_env = None
        if self.env or env:
            merged_env = {**os.environ, **self.env, **(env or {})}
        logger.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=True,
                text=True,
                check=False,
                timeout=effective_timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolchainTimeoutError(
                f"{' '.join(cmd[:3])} timed out after {effective_timeout}s."
            ) from exc
        except OSError as exc:
            return ToolchainResult(stdout="", stderr=str(exc), exit_code=None, spawn_error=str(exc))
        return ToolchainResult(
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            exit_code=proc.returncode,
        )


def format_output_tail(stdout: str, stderr: Optional[str] = None) -> str:
    """Return the last lines of combined output, prefixed for error messages."""

    chunks = [chunk for chunk in (stderr, stdout) if chunk and chunk.strip()]
    if not chunks:
        return ""
    lines = "\n".join(chunks).strip().splitlines()
    tail = "\n".join(lines[-OUTPUT_TAIL_LINES:])
    if len(tail) > OUTPUT_TAIL_MAX_CHARS:
        tail = f"{tail[:OUTPUT_TAIL_MAX_CHARS]}\n..."
    return f"\nSui CLI output (tail):\n{tail}"


def parse_toolchain_version(output: str) -> Optional[str]:
    if not output or not output.strip():
        return None
    first_line = output.strip().splitlines()[0]
    match = _VERSION_RE.search(first_line)
    return match.group(1) if match else first_line.strip() or None


def get_toolchain_version(runner: ToolchainRunner) -> Optional[str]:
    result = runner.run(["--version"])
    if not result.ok:
        return None
    return parse_toolchain_version(result.stdout)


def get_environment_chain_id(runner: ToolchainRunner, environment: Optional[str] = None) -> Optional[str]:
    """Read a chain id from ``client envs --json``.

    The output is ``[[{alias, rpc, chain_id}, ...], active_alias]``. When no
    environment is given the active one is used.
    """

    result = runner.with_prefix("client").run(["envs", "--json"])
    if not result.ok:
        return None
    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, list) or not payload:
        return None
    entries = payload[0] if isinstance(payload[0], list) else []
    active = payload[1] if len(payload) > 1 and isinstance(payload[1], str) else None
    target = environment or active
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        if entry.get("alias") == target:
            chain_id = entry.get("chain_id") or entry.get("chainId")
            return str(chain_id) if chain_id else None
    return None


def sign_with_keytool(
    runner: ToolchainRunner,
    address: str,
    tx_bytes: str,
    *,
    keystore_path: Optional[str] = None,
) -> str:
    """Sign base64 transaction bytes with the local keystore and return the serialized signature."""

    prefix = ["keytool"]
    if keystore_path:
        prefix.extend(["--keystore-path", keystore_path])
    result = runner.with_prefix(*prefix).run(["sign", "--address", address, "--data", tx_bytes, "--json"])
    if not result.ok:
        raise ToolchainError(
            f"sui keytool sign failed for {address} (exit code {result.exit_code})."
            f"{format_output_tail(result.stdout, result.stderr)}"
        )
    try:
        payload = json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise ToolchainError(f"sui keytool sign returned invalid JSON: {exc}") from exc
    signature = payload.get("suiSignature") if isinstance(payload, dict) else None
    if not signature:
        raise ToolchainError("sui keytool sign did not return a signature.")
    return str(signature)


__all__ = [
    "DEFAULT_EXECUTABLE",
    "ToolchainResult",
    "ToolchainRunner",
    "format_output_tail",
    "get_environment_chain_id",
    "get_toolchain_version",
    "parse_toolchain_version",
    "sign_with_keytool",
]
