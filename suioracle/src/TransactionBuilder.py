"""TransactionBuilder: Assembles unsigned price_oracle Move call transactions.

Each transaction is a Sui ``TransactionData::V1`` holding a programmable
transaction with a single Move call, paid for by one coin of the signer:

    create_price_object(symbol: vector<u8>, initial_price: u64,
                        initial_timestamp_ms: u64, decimals: u8)
    update_price(record: &mut PriceObject, price: u64, timestamp_ms: u64)

Prices travel as fixed-decimal integers, see :func:`scale_price`.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from functools import cached_property

from .bcs import BcsWriter, encode_byte_vector, encode_u8, encode_u64, normalize_address
from .errors import ChainError, EncodingError, FundingError
from .SuiRpcClient import ObjectRef, SuiRpcClient

logger = logging.getLogger(__name__)

# Number of decimals stored on-chain.
NUM_DECIMALS = 6

# Fixed budget well above the cost of either call, in MIST.
GAS_BUDGET = 100_000_000

# Used when the node does not report a reference gas price.
DEFAULT_GAS_PRICE = 1000

MODULE_NAME = "price_oracle"
CREATE_FUNCTION = "create_price_object"
UPDATE_FUNCTION = "update_price"
RECORD_TYPE_NAME = "PriceObject"

_IDENTIFIER_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

# BCS enum variant indices
_TX_DATA_V1 = 0
_KIND_PROGRAMMABLE = 0
_CALL_ARG_PURE = 0
_CALL_ARG_OBJECT = 1
_OBJECT_ARG_IMM_OR_OWNED = 0
_COMMAND_MOVE_CALL = 0
_ARGUMENT_INPUT = 1
_EXPIRATION_NONE = 0


def scale_price(value: float, decimals: int = NUM_DECIMALS) -> int:
    """Convert a price to its on-chain fixed-decimal integer.

    The product ``value * 10**decimals`` is rounded to the nearest integer,
    halves away from zero.

    :param value: Price as float.
    :param decimals: Number of decimals.
    :returns: Scaled price as u64.
    :raises EncodingError: If the result is negative, non-finite or does
        not fit in 64 bits.

    .. code-block:: python

        >>> scale_price(101.5, decimals=0)
        102
        >>> scale_price(60101.4)
        60101400000
    """
    if not math.isfinite(value):
        raise EncodingError(f"Cannot scale non-finite price {value}")
    if value < 0:
        raise EncodingError(f"Cannot scale negative price {value}")
    product = value * (10**decimals)
    scaled = int(Decimal(product).to_integral_value(rounding=ROUND_HALF_UP))
    if not 0 <= scaled < 2**64:
        raise EncodingError(f"Scaled price {scaled} is not a valid u64")
    return scaled


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER_RE.match(name):
        raise EncodingError(f"Invalid Move identifier {name!r}")
    return name


def _write_object_ref(w: BcsWriter, ref: ObjectRef) -> None:
    try:
        digest = ref.digest_bytes
    except ValueError as e:
        raise EncodingError(f"Invalid digest for {ref.object_id}: {e}") from e
    if len(digest) != 32:
        raise EncodingError(f"Object digest of {ref.object_id} is not 32 bytes")
    w.address(ref.object_id).u64(ref.version).byte_vector(digest)


@dataclass(frozen=True)
class PureArg:
    """BCS encoded value argument."""

    value: bytes


@dataclass(frozen=True)
class OwnedObjectArg:
    """Immutable or address-owned object argument."""

    ref: ObjectRef


CallArg = PureArg | OwnedObjectArg


@dataclass(frozen=True)
class MoveCall:
    """A Move function call.

    :ivar package: Package id.
    :ivar module: Module name.
    :ivar function: Function name.
    :ivar arguments: Call arguments, in order.
    """

    package: str
    module: str
    function: str
    arguments: tuple[CallArg, ...]


@dataclass
class TransactionData:
    """Unsigned transaction with a single Move call.

    :ivar sender: Sender address, also the gas owner.
    :ivar call: The Move call.
    :ivar gas_payment: Coin paying for gas.
    :ivar gas_price: Gas price in MIST per unit.
    :ivar gas_budget: Maximum gas in MIST.
    :ivar label: Short description for log lines.
    """

    sender: str
    call: MoveCall
    gas_payment: ObjectRef
    gas_price: int
    gas_budget: int = GAS_BUDGET
    label: str = field(default="", compare=False)

    @cached_property
    def tx_bytes(self) -> bytes:
        """BCS encoding of the transaction.

        :raises EncodingError: If any field is not representable.
        """
        w = BcsWriter()
        w.variant(_TX_DATA_V1).variant(_KIND_PROGRAMMABLE)

        # Inputs
        w.length(len(self.call.arguments))
        for arg in self.call.arguments:
            if isinstance(arg, PureArg):
                w.variant(_CALL_ARG_PURE).byte_vector(arg.value)
            else:
                w.variant(_CALL_ARG_OBJECT).variant(_OBJECT_ARG_IMM_OR_OWNED)
                _write_object_ref(w, arg.ref)

        # Commands: one MoveCall using every input in order
        w.length(1).variant(_COMMAND_MOVE_CALL)
        w.address(self.call.package)
        w.string(_check_identifier(self.call.module))
        w.string(_check_identifier(self.call.function))
        w.length(0)  # type arguments
        w.length(len(self.call.arguments))
        for index in range(len(self.call.arguments)):
            w.variant(_ARGUMENT_INPUT).u16(index)

        w.address(self.sender)

        # GasData
        w.length(1)
        _write_object_ref(w, self.gas_payment)
        w.address(self.sender).u64(self.gas_price).u64(self.gas_budget)

        w.variant(_EXPIRATION_NONE)
        return w.getvalue()


class TransactionBuilder:
    """Builds create and update transactions for the price_oracle module.

    Gas price and the fee-paying coin are looked up for every transaction.
    All transactions pay from the signer's coins, so callers hold
    :attr:`gas_lock` from building until the transaction has executed.

    :ivar rpc: Chain RPC client.
    :ivar sender: Signer address.
    :ivar package_id: Package containing the price_oracle module.
    :ivar module_name: Module name.
    :ivar gas_budget: Gas budget for every transaction.
    :ivar gas_lock: Serializes use of the signer's gas coins.
    """

    def __init__(
        self,
        rpc: SuiRpcClient,
        sender: str,
        package_id: str,
        module_name: str = MODULE_NAME,
        gas_budget: int = GAS_BUDGET,
        default_gas_price: int = DEFAULT_GAS_PRICE,
    ) -> None:
        """Initialize the builder.

        :param rpc: Chain RPC client.
        :param sender: Signer address.
        :param package_id: Package id of the deployed contract.
        :param module_name: Module exposing the price functions.
        :param gas_budget: Gas budget in MIST (default: 100_000_000).
        :param default_gas_price: Gas price used if the node cannot report one.
        """
        self.rpc = rpc
        self.sender = normalize_address(sender)
        self.package_id = normalize_address(package_id)
        self.module_name = _check_identifier(module_name)
        self.gas_budget = gas_budget
        self.default_gas_price = default_gas_price
        self.gas_lock = asyncio.Lock()

    async def reference_gas_price(self) -> int:
        """Current reference gas price, or the default if unavailable."""
        try:
            return await self.rpc.get_reference_gas_price()
        except (ChainError, ValueError) as e:
            logger.warning(
                f"Reference gas price unavailable ({e}), "
                f"using default {self.default_gas_price}"
            )
            return self.default_gas_price

    async def select_gas_coin(self) -> ObjectRef:
        """Pick one coin owned by the signer to pay for gas.

        :raises FundingError: If the signer owns no coin.
        """
        coins = await self.rpc.get_coins(self.sender, limit=1)
        if not coins:
            raise FundingError(f"No gas coins found for address {self.sender}")
        return coins[0].ref

    async def build_create(
        self, symbol: str, decimals: int = NUM_DECIMALS
    ) -> TransactionData:
        """Build a ``create_price_object`` call with zero price and timestamp.

        :param symbol: Asset symbol stored in the record.
        :param decimals: Decimals of the stored price.
        :returns: Unsigned transaction.
        """
        arguments = (
            PureArg(encode_byte_vector(symbol.encode("utf-8"))),
            PureArg(encode_u64(0)),
            PureArg(encode_u64(0)),
            PureArg(encode_u8(decimals)),
        )
        return await self._build(CREATE_FUNCTION, arguments, label=f"create {symbol}")

    async def build_update(
        self, record_id: str, price: int, timestamp_ms: int
    ) -> TransactionData:
        """Build an ``update_price`` call against the record's latest version.

        The record reference is fetched right before building.

        :param record_id: Object id of the record.
        :param price: Scaled price.
        :param timestamp_ms: Milliseconds since epoch.
        :returns: Unsigned transaction.
        """
        record_ref = await self.rpc.get_object_ref(record_id)
        logger.debug(
            f"Record {record_ref.object_id} at version {record_ref.version}"
        )
        arguments = (
            OwnedObjectArg(record_ref),
            PureArg(encode_u64(price)),
            PureArg(encode_u64(timestamp_ms)),
        )
        return await self._build(
            UPDATE_FUNCTION, arguments, label=f"update {record_ref.object_id}"
        )

    async def _build(
        self, function: str, arguments: tuple[CallArg, ...], label: str
    ) -> TransactionData:
        gas_price = await self.reference_gas_price()
        gas_coin = await self.select_gas_coin()
        tx = TransactionData(
            sender=self.sender,
            call=MoveCall(
                package=self.package_id,
                module=self.module_name,
                function=function,
                arguments=arguments,
            ),
            gas_payment=gas_coin,
            gas_price=gas_price,
            gas_budget=self.gas_budget,
            label=label,
        )
        # Encode now so representation errors surface while building
        tx.tx_bytes
        return tx
