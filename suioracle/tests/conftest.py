"""Shared fakes for the publish pipeline tests."""

import itertools
from typing import Any

import base58
import pytest
from nacl.signing import SigningKey

from suioracle.src.errors import ChainError
from suioracle.src.Signer import Signer
from suioracle.src.SubmissionGateway import SubmissionGateway
from suioracle.src.SuiRpcClient import Coin, ObjectRef, OwnedObject
from suioracle.src.TransactionBuilder import CREATE_FUNCTION, TransactionBuilder

PACKAGE_ID = "0x" + "ab" * 32
DIGEST = base58.b58encode(bytes([7]) * 32).decode("ascii")
PRIVATE_KEY_SEED = bytes(range(32))


def object_id(n: int) -> str:
    return "0x" + f"{n:064x}"


class FakeSuiRpc:
    """In-memory stand-in for SuiRpcClient.

    Records every executed transaction. Created records get sequential ids
    starting at 0x...100 and are owned by ``owner``.
    """

    def __init__(self, owner: str, package_id: str = PACKAGE_ID) -> None:
        self.owner = owner
        self.package_id = package_id
        self.gas_price: int | Exception = 750
        self.coins = [Coin(ObjectRef(object_id(1), 10, DIGEST), balance=10**10)]
        self.objects: dict[str, ObjectRef] = {}
        self.owned: list[OwnedObject] = []
        self.executed: list[tuple[bytes, list[str]]] = []
        self.execute_error: Exception | None = None
        self.execute_response: dict[str, Any] | None = None
        self.owned_queries = 0
        self._ids = itertools.count(0x100)
        self._digests = itertools.count(1)

    @property
    def record_type(self) -> str:
        return f"{self.package_id}::price_oracle::PriceObject"

    def add_record(self, symbol: str, version: int = 3) -> str:
        record_id = object_id(next(self._ids))
        ref = ObjectRef(record_id, version, DIGEST)
        self.objects[record_id] = ref
        self.owned.append(
            OwnedObject(
                ref=ref,
                object_type=self.record_type,
                fields={"symbol": list(symbol.encode("utf-8")), "price": "0"},
            )
        )
        return record_id

    async def get_reference_gas_price(self) -> int:
        if isinstance(self.gas_price, Exception):
            raise self.gas_price
        return self.gas_price

    async def get_coins(self, owner: str, limit: int = 1) -> list[Coin]:
        return self.coins[:limit]

    async def get_object_ref(self, record_id: str) -> ObjectRef:
        if record_id not in self.objects:
            raise ChainError(f"Object {record_id} unavailable: notExists")
        return self.objects[record_id]

    async def get_owned_objects(self, owner: str, struct_type: str) -> list[OwnedObject]:
        self.owned_queries += 1
        return [o for o in self.owned if o.object_type == struct_type]

    async def execute_transaction_block(
        self, tx_bytes: bytes, signatures: list[str]
    ) -> dict[str, Any]:
        self.executed.append((tx_bytes, signatures))
        if self.execute_error is not None:
            raise self.execute_error
        if self.execute_response is not None:
            return self.execute_response

        digest = f"Digest{next(self._digests)}"
        changes = []
        if CREATE_FUNCTION.encode() in tx_bytes:
            record_id = object_id(next(self._ids))
            self.objects[record_id] = ObjectRef(record_id, 1, DIGEST)
            changes.append(
                {
                    "type": "created",
                    "objectId": record_id,
                    "objectType": self.record_type,
                    "owner": {"AddressOwner": self.owner},
                    "version": "1",
                    "digest": DIGEST,
                }
            )
        return {
            "digest": digest,
            "effects": {"status": {"status": "success"}},
            "objectChanges": changes,
        }


@pytest.fixture
def signer() -> Signer:
    return Signer(SigningKey(PRIVATE_KEY_SEED))


@pytest.fixture
def rpc(signer: Signer) -> FakeSuiRpc:
    return FakeSuiRpc(owner=signer.address)


@pytest.fixture
def builder(rpc: FakeSuiRpc, signer: Signer) -> TransactionBuilder:
    return TransactionBuilder(rpc, sender=signer.address, package_id=PACKAGE_ID)


@pytest.fixture
def gateway(rpc: FakeSuiRpc, signer: Signer) -> SubmissionGateway:
    return SubmissionGateway(rpc, owner=signer.address, package_id=PACKAGE_ID)
