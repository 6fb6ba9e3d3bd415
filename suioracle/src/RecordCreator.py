"""RecordCreator: Creates price records on-chain and finds existing ones."""

from __future__ import annotations

import logging
from typing import Any

from .errors import MissingCreatedObjectError
from .Signer import Signer
from .SubmissionGateway import SubmissionGateway
from .SuiRpcClient import SuiRpcClient
from .TransactionBuilder import NUM_DECIMALS, TransactionBuilder

logger = logging.getLogger(__name__)


def _decode_symbol_field(value: Any) -> str | None:
    # vector<u8> renders as a list of ints, String as str
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(b, int) for b in value):
        try:
            return bytes(value).decode("utf-8")
        except (ValueError, UnicodeDecodeError):
            return None
    return None


class RecordCreator:
    """Issues ``create_price_object`` calls for the asset registry.

    :ivar builder: Transaction builder.
    :ivar signer: Transaction signer.
    :ivar gateway: Submission gateway.
    :ivar decimals: Decimals stored in new records.
    """

    def __init__(
        self,
        builder: TransactionBuilder,
        signer: Signer,
        gateway: SubmissionGateway,
        decimals: int = NUM_DECIMALS,
    ) -> None:
        self.builder = builder
        self.signer = signer
        self.gateway = gateway
        self.decimals = decimals

    @property
    def rpc(self) -> SuiRpcClient:
        return self.builder.rpc

    async def create(self, symbol: str) -> str:
        """Create a record for ``symbol`` and return its object id.

        :param symbol: Asset symbol.
        :returns: Object id of the new record.
        :raises MissingCreatedObjectError: If the transaction created no record.
        """
        async with self.builder.gas_lock:
            tx = await self.builder.build_create(symbol, self.decimals)
            signature = self.signer.sign(tx.tx_bytes)
            outcome = await self.gateway.submit(
                tx.tx_bytes, signature, expect_created=True
            )
        if outcome.created_record_id is None:
            raise MissingCreatedObjectError(self.gateway.record_type, outcome.digest)
        logger.info(
            f"Created {self.gateway.type_name} {outcome.created_record_id} "
            f"for {symbol} (digest {outcome.digest})"
        )
        return outcome.created_record_id

    async def find_existing(self, symbol: str) -> str | None:
        """Look up a record for ``symbol`` already owned by the signer.

        :param symbol: Asset symbol.
        :returns: Object id of the record, or None if there is none.
        """
        owned = await self.rpc.get_owned_objects(
            self.signer.address, self.gateway.record_type
        )
        for obj in owned:
            if not self.gateway.matches_record_type(obj.object_type):
                continue
            if _decode_symbol_field(obj.fields.get("symbol")) == symbol:
                return obj.ref.object_id
        return None
