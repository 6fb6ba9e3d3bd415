"""SubmissionGateway: Executes signed transactions and classifies the result.

Outcomes:
    - success status: :class:`TransactionOutcome` with the digest
    - node rejected an outdated object version: :class:`StaleObjectError`
    - any other rejection or failure status: :class:`ChainExecutionError`
    - creation succeeded but no matching object was created:
      :class:`MissingCreatedObjectError`
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .bcs import normalize_address
from .errors import (
    ChainExecutionError,
    EncodingError,
    MissingCreatedObjectError,
    RpcError,
    StaleObjectError,
)
from .SuiRpcClient import SuiRpcClient
from .TransactionBuilder import MODULE_NAME, RECORD_TYPE_NAME

logger = logging.getLogger(__name__)

# Fragments of node messages reporting an object version that is not current
STALE_OBJECT_MARKERS = (
    "not available for consumption",
    "objectversionunavailableforconsumption",
)


def is_stale_object_message(message: str) -> bool:
    """Check whether a chain error message reports a stale object reference."""
    lowered = message.lower()
    return any(marker in lowered for marker in STALE_OBJECT_MARKERS)


@dataclass(frozen=True)
class TransactionOutcome:
    """Result of a successful submission.

    :ivar digest: Transaction digest.
    :ivar created_record_id: Id of the created record, for creation calls.
    """

    digest: str
    created_record_id: str | None = None


def _address_owner(owner: Any) -> str | None:
    if isinstance(owner, dict) and "AddressOwner" in owner:
        try:
            return normalize_address(owner["AddressOwner"])
        except EncodingError:
            return None
    return None


class SubmissionGateway:
    """Submits signed transactions and waits for their effects.

    :ivar rpc: Chain RPC client.
    :ivar owner: Signer address expected to own created records.
    :ivar package_id: Package id of the record type.
    :ivar module_name: Module of the record type.
    :ivar type_name: Struct name of the record type.
    """

    def __init__(
        self,
        rpc: SuiRpcClient,
        owner: str,
        package_id: str,
        module_name: str = MODULE_NAME,
        type_name: str = RECORD_TYPE_NAME,
    ) -> None:
        """Initialize the gateway.

        :param rpc: Chain RPC client.
        :param owner: Signer address.
        :param package_id: Package id of the deployed contract.
        :param module_name: Module name (default: "price_oracle").
        :param type_name: Record struct name (default: "PriceObject").
        """
        self.rpc = rpc
        self.owner = normalize_address(owner)
        self.package_id = normalize_address(package_id)
        self.module_name = module_name
        self.type_name = type_name

    @property
    def record_type(self) -> str:
        """Fully qualified Move type of the record."""
        return f"{self.package_id}::{self.module_name}::{self.type_name}"

    def matches_record_type(self, object_type: str) -> bool:
        """Check that ``object_type`` is exactly the record type.

        Package ids are compared in normalized form; generic instantiations
        never match.
        """
        parts = object_type.split("::")
        if len(parts) != 3:
            return False
        address, module, name = parts
        try:
            package = normalize_address(address)
        except EncodingError:
            return False
        return (
            package == self.package_id
            and module == self.module_name
            and name == self.type_name
        )

    def find_created_record(self, response: dict[str, Any]) -> str | None:
        """Return the first created record owned by the signer, if any.

        :param response: Transaction block response with object changes.
        :returns: Object id of the record, or None.
        """
        for change in response.get("objectChanges") or []:
            if change.get("type") != "created":
                continue
            if _address_owner(change.get("owner")) != self.owner:
                continue
            if not self.matches_record_type(change.get("objectType", "")):
                continue
            return normalize_address(change["objectId"])
        return None

    async def submit(
        self,
        tx_bytes: bytes,
        signature: str,
        *,
        expect_created: bool = False,
    ) -> TransactionOutcome:
        """Execute a signed transaction.

        :param tx_bytes: BCS encoded TransactionData.
        :param signature: Base64 serialized signature.
        :param expect_created: Extract the id of a created record.
        :returns: Outcome with digest and, for creations, the record id.
        :raises StaleObjectError: If an input object version was outdated.
        :raises ChainExecutionError: If the transaction was rejected or failed.
        :raises MissingCreatedObjectError: If no matching record was created.
        :raises ChainError: If the node could not be reached.
        """
        try:
            response = await self.rpc.execute_transaction_block(tx_bytes, [signature])
        except RpcError as e:
            if is_stale_object_message(str(e)):
                raise StaleObjectError(str(e)) from e
            raise ChainExecutionError(str(e)) from e

        digest = response.get("digest", "")
        effects = response.get("effects")
        if not effects:
            raise ChainExecutionError("transaction effects not available", digest)

        status = effects.get("status") or {}
        if status.get("status") != "success":
            reason = status.get("error") or status.get("status") or "unknown status"
            logger.error(f"Transaction {digest} failed: {reason}")
            if is_stale_object_message(reason):
                raise StaleObjectError(reason, digest)
            raise ChainExecutionError(reason, digest)

        created_record_id = None
        if expect_created:
            created_record_id = self.find_created_record(response)
            if created_record_id is None:
                logger.error(
                    f"Transaction {digest} created no {self.record_type}: "
                    f"{response.get('objectChanges')}"
                )
                raise MissingCreatedObjectError(self.record_type, digest)

        return TransactionOutcome(digest=digest, created_record_id=created_record_id)
