"""JSON-RPC client and signer used by the SDK publish path."""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence

import requests
from requests import Response, Session
from requests.exceptions import RequestException

from .errors import NetworkError
from .toolchain import ToolchainRunner, sign_with_keytool

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
REQUEST_TYPE = "WaitForLocalExecution"

_PACKAGE_ID_RE = re.compile(r"0x[0-9a-fA-F]{64}")


class Signer(Protocol):
    address: str

    def sign(self, tx_bytes: str) -> str:
        ...


@dataclass(slots=True)
class PublishTransaction:
    """Publish transaction inputs; the upgrade cap is transferred to ``sender``."""

    sender: str
    modules: List[str]
    dependencies: List[str]
    gas_budget: int
    gas_object: Optional[str] = None


@dataclass(slots=True)
class TransactionResponse:
    digest: str
    status: str
    error: Optional[str] = None
    object_changes: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_rpc(cls, payload: Dict[str, Any]) -> "TransactionResponse":
        effects = payload.get("effects") or {}
        status = effects.get("status") or {}
        return cls(
            digest=str(payload.get("digest") or ""),
            status=str(status.get("status") or "unknown"),
            error=status.get("error"),
            object_changes=list(payload.get("objectChanges") or []),
            raw=payload,
        )


class NetworkClient(Protocol):
    def get_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        ...

    def get_chain_identifier(self) -> str:
        ...

    def sign_and_submit(self, transaction: PublishTransaction, signer: Signer) -> TransactionResponse:
        ...


class SuiJsonRpcClient:
    """Minimal Sui JSON-RPC client covering the calls the publish pipeline needs."""

    def __init__(self, rpc_url: str, *, session: Optional[Session] = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.rpc_url = rpc_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self._ids = itertools.count(1)

    def call(self, method: str, params: Sequence[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        logger.debug("RPC %s -> %s", method, self.rpc_url)
        try:
            response: Response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
        except RequestException as exc:
            raise NetworkError(f"{method} request to {self.rpc_url} failed: {exc}") from exc

        if response.status_code >= 400:
            raise NetworkError(f"{method} returned HTTP {response.status_code}: {response.text or response.reason}")
        try:
            body = response.json()
        except ValueError as exc:
            raise NetworkError(f"{method} returned invalid JSON: {exc}") from exc

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise NetworkError(f"{method} failed: {message}")
        return body.get("result") if isinstance(body, dict) else None

    def get_object(self, object_id: str) -> Optional[Dict[str, Any]]:
        """Object data with its type, or ``None`` when the object does not exist."""

        result = self.call("sui_getObject", [object_id, {"showType": True, "showOwner": True}])
        if not isinstance(result, dict) or result.get("error"):
            return None
        data = result.get("data")
        return data if isinstance(data, dict) else None

    def get_chain_identifier(self) -> str:
        result = self.call("sui_getChainIdentifier", [])
        if not result:
            raise NetworkError("sui_getChainIdentifier returned an empty chain identifier.")
        return str(result)

    def build_publish_transaction(self, transaction: PublishTransaction) -> str:
        result = self.call(
            "unsafe_publish",
            [
                transaction.sender,
                transaction.modules,
                transaction.dependencies,
                transaction.gas_object,
                str(transaction.gas_budget),
            ],
        )
        tx_bytes = result.get("txBytes") if isinstance(result, dict) else None
        if not tx_bytes:
            raise NetworkError("unsafe_publish did not return transaction bytes.")
        return str(tx_bytes)

    def sign_and_submit(self, transaction: PublishTransaction, signer: Signer) -> TransactionResponse:
        tx_bytes = self.build_publish_transaction(transaction)
        signature = signer.sign(tx_bytes)
        result = self.call(
            "sui_executeTransactionBlock",
            [
                tx_bytes,
                [signature],
                {"showEffects": True, "showObjectChanges": True},
                REQUEST_TYPE,
            ],
        )
        if not isinstance(result, dict):
            raise NetworkError("sui_executeTransactionBlock returned an empty response.")
        return TransactionResponse.from_rpc(result)


class KeytoolSigner:
    """Signs transaction bytes with ``sui keytool`` using the local keystore."""

    def __init__(self, address: str, runner: ToolchainRunner, *, keystore_path: Optional[str] = None) -> None:
        self.address = address
        self.runner = runner
        self.keystore_path = keystore_path

    def sign(self, tx_bytes: str) -> str:
        return sign_with_keytool(self.runner, self.address, tx_bytes, keystore_path=self.keystore_path)


def package_id_from_type(type_str: Optional[str]) -> Optional[str]:
    """Return the last package address embedded in a Move type string."""

    if not type_str:
        return None
    matches = _PACKAGE_ID_RE.findall(type_str)
    return matches[-1].lower() if matches else None


__all__ = [
    "KeytoolSigner",
    "NetworkClient",
    "PublishTransaction",
    "Signer",
    "SuiJsonRpcClient",
    "TransactionResponse",
    "package_id_from_type",
]
