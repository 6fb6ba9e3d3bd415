"""Unit tests for TransactionBuilder."""

import math
import struct

import base58
import httpx
import pytest
from conftest import DIGEST, PACKAGE_ID, FakeSuiRpc, object_id

from suioracle.src.bcs import address_to_bytes
from suioracle.src.errors import ChainError, EncodingError, FundingError
from suioracle.src.Signer import Signer
from suioracle.src.SuiRpcClient import ObjectRef, SuiRpcClient
from suioracle.src.TransactionBuilder import (
    GAS_BUDGET,
    NUM_DECIMALS,
    MoveCall,
    OwnedObjectArg,
    PureArg,
    TransactionBuilder,
    TransactionData,
    scale_price,
)


def _object_ref_bytes(ref: ObjectRef) -> bytes:
    digest = base58.b58decode(ref.digest)
    return (
        address_to_bytes(ref.object_id)
        + struct.pack("<Q", ref.version)
        + bytes([len(digest)])
        + digest
    )


def _identifier(name: str) -> bytes:
    return bytes([len(name)]) + name.encode()


class TestScalePrice:
    """Test conversion to the on-chain fixed-decimal integer."""

    def test_default_decimals(self) -> None:
        """Prices should be scaled by 10**6."""
        assert NUM_DECIMALS == 6
        assert scale_price(60101.4) == 60101400000
        assert scale_price(1.0) == 1_000_000

    def test_half_rounds_away_from_zero(self) -> None:
        """Exact halves should round up."""
        assert scale_price(2.5, decimals=0) == 3
        assert scale_price(101.5, decimals=0) == 102
        assert scale_price(0.5, decimals=0) == 1

    def test_half_at_price_decimals(self) -> None:
        """A half unit at the sixth decimal should round up."""
        assert scale_price(1.2345675, decimals=6) == 1234568

    def test_rescaling_same_float_is_stable(self) -> None:
        """Scaling the same float again should give the same integer."""
        for value in (1.2345675, 60101.4, 0.1 + 0.2):
            assert scale_price(value) == scale_price(value)

    def test_below_half_rounds_down(self) -> None:
        """Values below a half should round down."""
        assert scale_price(2.4, decimals=0) == 2

    def test_zero(self) -> None:
        """Zero should be representable."""
        assert scale_price(0.0) == 0

    def test_negative_rejected(self) -> None:
        """Negative prices should raise EncodingError."""
        with pytest.raises(EncodingError):
            scale_price(-1.0)

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_rejected(self, value: float) -> None:
        """NaN and infinities should raise EncodingError."""
        with pytest.raises(EncodingError, match="non-finite"):
            scale_price(value)

    def test_u64_overflow_rejected(self) -> None:
        """Values that do not fit in 64 bits should raise EncodingError."""
        with pytest.raises(EncodingError, match="u64"):
            scale_price(2.0**64, decimals=0)


class TestTransactionData:
    """Test the BCS layout of transactions."""

    def test_update_layout(self, signer: Signer) -> None:
        """An update transaction should match the TransactionData V1 layout."""
        record = ObjectRef(object_id(0x100), 5, DIGEST)
        coin = ObjectRef(object_id(1), 10, DIGEST)
        tx = TransactionData(
            sender=signer.address,
            call=MoveCall(
                package=PACKAGE_ID,
                module="price_oracle",
                function="update_price",
                arguments=(
                    OwnedObjectArg(record),
                    PureArg(struct.pack("<Q", 123)),
                    PureArg(struct.pack("<Q", 456)),
                ),
            ),
            gas_payment=coin,
            gas_price=750,
            gas_budget=GAS_BUDGET,
        )

        sender = address_to_bytes(signer.address)
        expected = (
            b"\x00"  # TransactionData::V1
            + b"\x00"  # ProgrammableTransaction
            + b"\x03"  # inputs
            + b"\x01\x00" + _object_ref_bytes(record)
            + b"\x00\x08" + struct.pack("<Q", 123)
            + b"\x00\x08" + struct.pack("<Q", 456)
            + b"\x01\x00"  # one MoveCall
            + address_to_bytes(PACKAGE_ID)
            + _identifier("price_oracle")
            + _identifier("update_price")
            + b"\x00"  # type arguments
            + b"\x03" + b"\x01\x00\x00" + b"\x01\x01\x00" + b"\x01\x02\x00"
            + sender
            + b"\x01" + _object_ref_bytes(coin)
            + sender
            + struct.pack("<Q", 750)
            + struct.pack("<Q", GAS_BUDGET)
            + b"\x00"  # no expiration
        )
        assert tx.tx_bytes == expected

    def test_invalid_identifier_rejected(self, signer: Signer) -> None:
        """Module names must be Move identifiers."""
        tx = TransactionData(
            sender=signer.address,
            call=MoveCall(PACKAGE_ID, "price-oracle", "update_price", ()),
            gas_payment=ObjectRef(object_id(1), 1, DIGEST),
            gas_price=1,
        )
        with pytest.raises(EncodingError, match="identifier"):
            tx.tx_bytes

    def test_invalid_digest_rejected(self, signer: Signer) -> None:
        """A digest that is not base58 should raise EncodingError."""
        tx = TransactionData(
            sender=signer.address,
            call=MoveCall(PACKAGE_ID, "price_oracle", "update_price", ()),
            gas_payment=ObjectRef(object_id(1), 1, "0OIl"),
            gas_price=1,
        )
        with pytest.raises(EncodingError, match="digest"):
            tx.tx_bytes


class TestTransactionBuilder:
    """Test building transactions against a chain."""

    @pytest.mark.asyncio
    async def test_build_update(
        self, builder: TransactionBuilder, rpc: FakeSuiRpc
    ) -> None:
        """Updates should reference the record's latest version."""
        record_id = rpc.add_record("BTC/USD", version=42)

        tx = await builder.build_update(record_id, 60101400000, 1_700_000_000_000)

        assert tx.call.function == "update_price"
        assert tx.call.arguments[0].ref.version == 42
        assert tx.call.arguments[1] == PureArg(struct.pack("<Q", 60101400000))
        assert tx.call.arguments[2] == PureArg(struct.pack("<Q", 1_700_000_000_000))
        assert tx.gas_price == 750
        assert tx.gas_payment == rpc.coins[0].ref
        assert tx.gas_budget == GAS_BUDGET
        assert b"update_price" in tx.tx_bytes

    @pytest.mark.asyncio
    async def test_build_create(self, builder: TransactionBuilder) -> None:
        """Creations should pass symbol, zero price and timestamp, and decimals."""
        tx = await builder.build_create("ETH/USD")

        assert tx.call.function == "create_price_object"
        assert [a.value for a in tx.call.arguments] == [
            b"\x07ETH/USD",
            bytes(8),
            bytes(8),
            bytes([NUM_DECIMALS]),
        ]

    @pytest.mark.asyncio
    async def test_no_coins_is_funding_error(
        self, builder: TransactionBuilder, rpc: FakeSuiRpc
    ) -> None:
        """A signer without coins should raise FundingError."""
        rpc.coins = []
        with pytest.raises(FundingError, match="No gas coins"):
            await builder.build_create("BTC/USD")

    @pytest.mark.asyncio
    async def test_gas_price_fallback(
        self, builder: TransactionBuilder, rpc: FakeSuiRpc
    ) -> None:
        """An unavailable gas price should fall back to the default."""
        rpc.gas_price = ChainError("node down")

        tx = await builder.build_create("BTC/USD")

        assert tx.gas_price == builder.default_gas_price

    @pytest.mark.asyncio
    async def test_gas_price_fallback_on_empty_result(
        self, builder: TransactionBuilder
    ) -> None:
        """A null gas price from the node should also use the default."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": None})

        builder.rpc = SuiRpcClient(
            "http://node.test",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        assert await builder.reference_gas_price() == builder.default_gas_price

    @pytest.mark.asyncio
    async def test_unknown_record_is_chain_error(
        self, builder: TransactionBuilder
    ) -> None:
        """A record missing on chain should raise ChainError."""
        with pytest.raises(ChainError):
            await builder.build_update(object_id(0xDEAD), 1, 1)

    @pytest.mark.asyncio
    async def test_overflowing_price_fails_while_building(
        self, builder: TransactionBuilder, rpc: FakeSuiRpc
    ) -> None:
        """Unrepresentable values should fail before anything is signed."""
        record_id = rpc.add_record("BTC/USD")
        with pytest.raises(EncodingError):
            await builder.build_update(record_id, 2**64, 1)

    def test_addresses_normalized(self, rpc: FakeSuiRpc, signer: Signer) -> None:
        """Sender and package should be stored normalized."""
        builder = TransactionBuilder(rpc, sender=signer.address, package_id="0x2")
        assert builder.package_id == "0x" + "0" * 63 + "2"
