from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from move_publish.client import PublishTransaction, TransactionResponse
from move_publish.toolchain import ToolchainResult

Handler = Callable[[List[str], Mapping[str, str]], ToolchainResult]


def address(suffix: int) -> str:
    return "0x" + f"{suffix:x}".rjust(64, "0")


def ok(stdout: str = "", stderr: str = "") -> ToolchainResult:
    return ToolchainResult(stdout=stdout, stderr=stderr, exit_code=0)


def failed(stdout: str = "", stderr: str = "", exit_code: int = 1) -> ToolchainResult:
    return ToolchainResult(stdout=stdout, stderr=stderr, exit_code=exit_code)


def publish_response(package_ids: Sequence[str], *, caps: Optional[Sequence[str]] = None, publishers: Sequence[str] = (), digest: str = "DIGEST") -> Dict[str, Any]:
    changes: List[Dict[str, Any]] = [{"type": "published", "packageId": package_id} for package_id in package_ids]
    for cap in caps if caps is not None else [address(0x100 + idx) for idx, _ in enumerate(package_ids)]:
        changes.append({"type": "created", "objectType": "0x2::package::UpgradeCap", "objectId": cap})
    for publisher in publishers:
        changes.append({"type": "created", "objectType": "0x2::package::Publisher", "objectId": publisher})
    changes.append({"type": "mutated", "objectType": "0x2::coin::Coin<0x2::sui::SUI>", "objectId": address(0xFFF)})
    return {"digest": digest, "effects": {"status": {"status": "success"}}, "objectChanges": changes}


class FakeRunner:
    """Stand-in for ToolchainRunner that records every command and answers via ``handler``."""

    def __init__(self, handler: Optional[Handler] = None, prefix: Sequence[str] = (), calls: Optional[List[List[str]]] = None, envs: Optional[List[Mapping[str, str]]] = None) -> None:
        self.handler = handler or (lambda cmd, env: ok())
        self.prefix = tuple(prefix)
        self.calls: List[List[str]] = calls if calls is not None else []
        self.envs: List[Mapping[str, str]] = envs if envs is not None else []

    def with_prefix(self, *prefix: str) -> "FakeRunner":
        return FakeRunner(self.handler, (*self.prefix, *prefix), self.calls, self.envs)

    def run(self, args: Sequence[str] = (), *, cwd: Any = None, env: Optional[Mapping[str, str]] = None, timeout: Optional[float] = None) -> ToolchainResult:
        cmd = [*self.prefix, *args]
        self.calls.append(cmd)
        self.envs.append(dict(env or {}))
        return self.handler(cmd, env or {})

    def commands_starting_with(self, *prefix: str) -> List[List[str]]:
        return [cmd for cmd in self.calls if tuple(cmd[: len(prefix)]) == prefix]


def sui_handler(*, publish_payload: Optional[Dict[str, Any]] = None, build_payload: Optional[Dict[str, Any]] = None, publish_result: Optional[ToolchainResult] = None) -> Handler:
    """Answer ``--version``, ``move build`` and ``client publish`` like a healthy toolchain."""

    def handler(cmd: List[str], env: Mapping[str, str]) -> ToolchainResult:
        if cmd == ["--version"]:
            return ok("sui 1.30.1-abcdef\n")
        if cmd[:2] == ["move", "build"]:
            payload = build_payload or {"modules": ["bW9kdWxl"], "dependencies": [address(1), address(2)]}
            return ok("INCLUDING DEPENDENCY Sui\nBUILDING shop\n" + json.dumps(payload))
        if cmd[:2] == ["client", "publish"]:
            if publish_result is not None:
                return publish_result
            return ok(json.dumps(publish_payload or publish_response([address(0xA)])))
        return failed(stderr=f"unexpected command: {' '.join(cmd)}")

    return handler


class FakeClient:
    def __init__(self, *, response: Optional[TransactionResponse] = None, error: Optional[Exception] = None, objects: Optional[Dict[str, Dict[str, Any]]] = None, chain_id: str = "4c78adac") -> None:
        self.response = response
        self.error = error
        self.objects = objects or {}
        self.chain_id = chain_id
        self.submitted: List[PublishTransaction] = []
        self.object_requests: List[str] = []

    def get_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        self.object_requests.append(object_id)
        return self.objects.get(object_id)

    def get_chain_identifier(self) -> str:
        return self.chain_id

    def sign_and_submit(self, transaction: PublishTransaction, signer: Any) -> TransactionResponse:
        self.submitted.append(transaction)
        signer.sign("dHg=")
        if self.error is not None:
            raise self.error
        assert self.response is not None
        return self.response


class FakeSigner:
    def __init__(self, address: str = address(0x5E)) -> None:
        self.address = address
        self.signed: List[str] = []

    def sign(self, tx_bytes: str) -> str:
        self.signed.append(tx_bytes)
        return "c2lnbmF0dXJl"


SUI_GIT = "https://github.com/MystenLabs/sui.git"


def pinned_lock(environment: str, revision: str, root: str, dependencies: Mapping[str, Optional[str]]) -> str:
    """Move.lock pinning MoveStdlib/Sui to ``revision`` plus local deps (value: published address or None)."""

    lines = ["# @generated by Move, please check-in and do not edit manually.", "", "[move]", "version = 4", ""]
    lines += [
        f"[pinned.{environment}.MoveStdlib]",
        f'source = {{ git = "{SUI_GIT}", subdir = "crates/sui-framework/packages/move-stdlib", rev = "{revision}" }}',
        "deps = {}",
        "",
        f"[pinned.{environment}.Sui]",
        f'source = {{ git = "{SUI_GIT}", subdir = "crates/sui-framework/packages/sui-framework", rev = "{revision}" }}',
        'deps = { MoveStdlib = "MoveStdlib" }',
        "",
    ]
    root_deps = ", ".join(['Sui = "Sui"', *(f'{name} = "{name}"' for name in dependencies)])
    lines += [f"[pinned.{environment}.{root}]", "source = { root = true }", f"deps = {{ {root_deps} }}", ""]
    for name, published in dependencies.items():
        lines += [f"[pinned.{environment}.{name}]", f'source = {{ local = "../{name}" }}']
        if published:
            lines.append(f'published-at = "{published}"')
        lines += ['deps = { Sui = "Sui" }', ""]
    return "\n".join(lines)


def manifest(name: str, dependencies: Sequence[str] = (), environments: Optional[Mapping[str, str]] = None) -> str:
    lines = ["[package]", f'name = "{name}"', 'edition = "2024.beta"', "", "[dependencies]"]
    lines += [f'{dep} = {{ local = "../{dep}" }}' for dep in dependencies]
    lines.append("")
    if environments is not None:
        lines.append("[environments]")
        lines += [f'{env} = "{chain_id}"' for env, chain_id in environments.items()]
        lines.append("")
    lines += ["[addresses]", f'{name} = "0x0"', ""]
    return "\n".join(lines)


def write_package(root: Path, name: str, manifest_text: str, lock_text: Optional[str] = None) -> Path:
    package = root / name
    package.mkdir(parents=True, exist_ok=True)
    (package / "Move.toml").write_text(manifest_text, encoding="utf-8")
    if lock_text is not None:
        (package / "Move.lock").write_text(lock_text, encoding="utf-8")
    return package
