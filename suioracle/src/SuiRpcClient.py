"""SuiRpcClient: Narrow async JSON-RPC capability for a Sui full node.

Only the read and submit calls the publish pipeline needs are exposed.
Objects returned by the node are reduced to small dataclasses so the rest of
the code never handles raw JSON-RPC payloads.
"""

from __future__ import annotations

import base64
import itertools
import logging
from dataclasses import dataclass
from typing import Any

import base58
import httpx

from .bcs import normalize_address
from .errors import ChainError, RpcError

logger = logging.getLogger(__name__)

SUI_TESTNET_RPC_URL = "https://fullnode.testnet.sui.io:443"


@dataclass(frozen=True)
class ObjectRef:
    """Reference to one version of an on-chain object.

    :ivar object_id: 0x-prefixed 32-byte object id.
    :ivar version: Object version (sequence number).
    :ivar digest: Base58 object digest.
    """

    object_id: str
    version: int
    digest: str

    @property
    def digest_bytes(self) -> bytes:
        """Raw 32-byte object digest."""
        return base58.b58decode(self.digest)


@dataclass(frozen=True)
class Coin:
    """A coin object owned by the signer.

    :ivar ref: Object reference of the coin.
    :ivar balance: Balance in MIST.
    """

    ref: ObjectRef
    balance: int


@dataclass(frozen=True)
class OwnedObject:
    """An owned object with its type and Move fields.

    :ivar ref: Object reference.
    :ivar object_type: Fully qualified Move type.
    :ivar fields: Move struct fields, as rendered by the node.
    """

    ref: ObjectRef
    object_type: str
    fields: dict[str, Any]


def _object_ref(data: dict[str, Any]) -> ObjectRef:
    return ObjectRef(
        object_id=normalize_address(data["objectId"]),
        version=int(data["version"]),
        digest=data["digest"],
    )


class SuiRpcClient:
    """Async JSON-RPC 2.0 client for a Sui full node.

    :ivar url: Full node RPC URL.
    :ivar timeout: Request timeout in seconds.
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        url: str = SUI_TESTNET_RPC_URL,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the RPC client.

        :param url: Full node RPC URL.
        :param timeout: Request timeout in seconds (default: 30).
        :param client: Optional preconfigured httpx client (used by tests).
        """
        self.url = url
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
        )
        self._ids = itertools.count(1)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def call(self, method: str, params: list[Any]) -> Any:
        """Invoke a JSON-RPC method and return its ``result``.

        :param method: RPC method name.
        :param params: Positional parameters.
        :returns: Decoded ``result`` member.
        :raises RpcError: If the node answered with an error object.
        :raises ChainError: On HTTP, network or decoding failures.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        logger.debug("RPC %s params=%s", method, params)
        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.TimeoutException as e:
            raise ChainError(f"{method} timed out: {e}") from e
        except httpx.RequestError as e:
            raise ChainError(f"{method} request failed: {e}") from e

        if not response.is_success:
            raise ChainError(
                f"{method} failed with HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )
        try:
            body = response.json()
        except ValueError as e:
            raise ChainError(f"{method} returned invalid JSON: {e}") from e

        if "error" in body:
            error = body["error"] or {}
            raise RpcError(
                int(error.get("code", 0)), str(error.get("message", "")), method
            )
        if "result" not in body:
            raise ChainError(f"{method} response has no result: {body}")
        return body["result"]

    async def get_reference_gas_price(self) -> int:
        """Fetch the current reference gas price in MIST.

        :raises ChainError: If the node returned no usable price.
        """
        result = await self.call("suix_getReferenceGasPrice", [])
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise ChainError(f"Invalid reference gas price: {result!r}") from e

    async def get_coins(self, owner: str, limit: int = 1) -> list[Coin]:
        """List SUI coins owned by ``owner``.

        :param owner: Owner address.
        :param limit: Maximum number of coins to return.
        :returns: Coins in node order.
        """
        result = await self.call(
            "suix_getCoins", [normalize_address(owner), None, None, limit]
        )
        coins = []
        for item in result.get("data", []):
            ref = ObjectRef(
                object_id=normalize_address(item["coinObjectId"]),
                version=int(item["version"]),
                digest=item["digest"],
            )
            coins.append(Coin(ref=ref, balance=int(item.get("balance", 0))))
        return coins

    async def get_object_ref(self, object_id: str) -> ObjectRef:
        """Fetch the latest reference of an object.

        :param object_id: Object id.
        :returns: Current object reference.
        :raises ChainError: If the object does not exist or was deleted.
        """
        result = await self.call(
            "sui_getObject", [normalize_address(object_id), {"showOwner": True}]
        )
        data = result.get("data")
        if not data:
            error = result.get("error") or {}
            raise ChainError(
                f"Object {object_id} unavailable: {error.get('code', 'unknown')}"
            )
        return _object_ref(data)

    async def get_owned_objects(
        self, owner: str, struct_type: str
    ) -> list[OwnedObject]:
        """List all objects of ``struct_type`` owned by ``owner``.

        Follows pagination until the node reports no further pages.

        :param owner: Owner address.
        :param struct_type: Fully qualified Move struct type.
        :returns: Owned objects with their fields.
        """
        query = {
            "filter": {"StructType": struct_type},
            "options": {"showType": True, "showContent": True},
        }
        objects: list[OwnedObject] = []
        cursor = None
        while True:
            result = await self.call(
                "suix_getOwnedObjects",
                [normalize_address(owner), query, cursor, None],
            )
            for item in result.get("data", []):
                data = item.get("data")
                if not data:
                    continue
                content = data.get("content") or {}
                objects.append(
                    OwnedObject(
                        ref=_object_ref(data),
                        object_type=data.get("type", ""),
                        fields=content.get("fields") or {},
                    )
                )
            if not result.get("hasNextPage"):
                return objects
            cursor = result.get("nextCursor")

    async def execute_transaction_block(
        self, tx_bytes: bytes, signatures: list[str]
    ) -> dict[str, Any]:
        """Execute a signed transaction and wait for local execution.

        :param tx_bytes: BCS encoded TransactionData.
        :param signatures: Base64 serialized signatures.
        :returns: Transaction block response with effects and object changes.
        """
        options = {"showEffects": True, "showObjectChanges": True}
        return await self.call(
            "sui_executeTransactionBlock",
            [
                base64.b64encode(tx_bytes).decode("ascii"),
                signatures,
                options,
                "WaitForLocalExecution",
            ],
        )
