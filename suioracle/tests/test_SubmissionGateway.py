"""Unit tests for SubmissionGateway."""

import pytest
from conftest import PACKAGE_ID, FakeSuiRpc, object_id

from suioracle.src.errors import (
    ChainError,
    ChainExecutionError,
    MissingCreatedObjectError,
    RpcError,
    StaleObjectError,
)
from suioracle.src.SubmissionGateway import (
    SubmissionGateway,
    TransactionOutcome,
    is_stale_object_message,
)

STALE_MESSAGE = (
    "Transaction validator signing failed due to issues with transaction "
    "inputs, please review the errors and try again: Object ID 0x12 Version "
    "0x5 Digest abc is not available for consumption, current version: 0x6"
)


def _response(status: str = "success", error: str | None = None, changes=None) -> dict:
    status_body = {"status": status}
    if error is not None:
        status_body["error"] = error
    return {
        "digest": "TxDigest",
        "effects": {"status": status_body},
        "objectChanges": changes or [],
    }


def _created(owner: str, object_type: str, n: int = 0x500) -> dict:
    return {
        "type": "created",
        "objectId": object_id(n),
        "objectType": object_type,
        "owner": {"AddressOwner": owner},
    }


class TestStaleDetection:
    """Test recognition of stale object messages."""

    def test_validator_message(self) -> None:
        """The validator's wording should be recognized."""
        assert is_stale_object_message(STALE_MESSAGE)

    def test_effects_error_name(self) -> None:
        """The execution error variant should be recognized."""
        assert is_stale_object_message(
            "ObjectVersionUnavailableForConsumption { provided_obj_ref: ... }"
        )

    def test_other_errors(self) -> None:
        """Unrelated failures should not be classified as stale."""
        assert not is_stale_object_message("InsufficientGas")
        assert not is_stale_object_message("MoveAbort(..., 1)")


class TestSubmit:
    """Test outcome classification."""

    @pytest.mark.asyncio
    async def test_success(self, gateway: SubmissionGateway, rpc: FakeSuiRpc) -> None:
        """A successful execution should return the digest."""
        rpc.execute_response = _response()

        outcome = await gateway.submit(b"tx", "sig")

        assert outcome == TransactionOutcome(digest="TxDigest")
        assert rpc.executed == [(b"tx", ["sig"])]

    @pytest.mark.asyncio
    async def test_failure_status(
        self, gateway: SubmissionGateway, rpc: FakeSuiRpc
    ) -> None:
        """A failure status should raise ChainExecutionError with the reason."""
        rpc.execute_response = _response("failure", "InsufficientGas")

        with pytest.raises(ChainExecutionError) as exc_info:
            await gateway.submit(b"tx", "sig")

        assert not isinstance(exc_info.value, StaleObjectError)
        assert exc_info.value.reason == "InsufficientGas"
        assert exc_info.value.digest == "TxDigest"

    @pytest.mark.asyncio
    async def test_stale_rejection(
        self, gateway: SubmissionGateway, rpc: FakeSuiRpc
    ) -> None:
        """A validator rejection for an old version should be StaleObjectError."""
        rpc.execute_error = RpcError(-32002, STALE_MESSAGE, "sui_executeTransactionBlock")

        with pytest.raises(StaleObjectError):
            await gateway.submit(b"tx", "sig")

    @pytest.mark.asyncio
    async def test_stale_failure_status(
        self, gateway: SubmissionGateway, rpc: FakeSuiRpc
    ) -> None:
        """A stale object in the effects should be StaleObjectError."""
        rpc.execute_response = _response(
            "failure", "ObjectVersionUnavailableForConsumption"
        )

        with pytest.raises(StaleObjectError):
            await gateway.submit(b"tx", "sig")

    @pytest.mark.asyncio
    async def test_other_rpc_rejection(
        self, gateway: SubmissionGateway, rpc: FakeSuiRpc
    ) -> None:
        """Other node rejections should be ChainExecutionError."""
        rpc.execute_error = RpcError(-32602, "Invalid user signature")

        with pytest.raises(ChainExecutionError) as exc_info:
            await gateway.submit(b"tx", "sig")

        assert not isinstance(exc_info.value, StaleObjectError)

    @pytest.mark.asyncio
    async def test_transport_error_propagates(
        self, gateway: SubmissionGateway, rpc: FakeSuiRpc
    ) -> None:
        """Transport failures should stay plain ChainError."""
        rpc.execute_error = ChainError("connection refused")

        with pytest.raises(ChainError) as exc_info:
            await gateway.submit(b"tx", "sig")

        assert not isinstance(exc_info.value, ChainExecutionError)

    @pytest.mark.asyncio
    async def test_missing_effects(
        self, gateway: SubmissionGateway, rpc: FakeSuiRpc
    ) -> None:
        """A response without effects is an execution error."""
        rpc.execute_response = {"digest": "TxDigest"}

        with pytest.raises(ChainExecutionError, match="effects"):
            await gateway.submit(b"tx", "sig")


class TestCreatedRecord:
    """Test extraction of the created record id."""

    @pytest.mark.asyncio
    async def test_created_record_found(
        self, gateway: SubmissionGateway, rpc: FakeSuiRpc
    ) -> None:
        """The record created for the signer should be returned."""
        rpc.execute_response = _response(
            changes=[
                {"type": "mutated", "objectId": object_id(1)},
                _created(rpc.owner, rpc.record_type),
            ]
        )

        outcome = await gateway.submit(b"tx", "sig", expect_created=True)

        assert outcome.created_record_id == object_id(0x500)

    @pytest.mark.asyncio
    async def test_missing_created_record(
        self, gateway: SubmissionGateway, rpc: FakeSuiRpc
    ) -> None:
        """A creation without a record should raise MissingCreatedObjectError."""
        rpc.execute_response = _response()

        with pytest.raises(MissingCreatedObjectError):
            await gateway.submit(b"tx", "sig", expect_created=True)

    def test_other_owner_ignored(self, gateway: SubmissionGateway, rpc: FakeSuiRpc) -> None:
        """Objects created for another owner should not match."""
        response = _response(changes=[_created(object_id(0x99), rpc.record_type)])
        assert gateway.find_created_record(response) is None

    def test_other_type_ignored(self, gateway: SubmissionGateway, rpc: FakeSuiRpc) -> None:
        """Objects of another type should not match."""
        response = _response(
            changes=[
                _created(rpc.owner, "0x2::coin::Coin<0x2::sui::SUI>", 0x501),
                _created(rpc.owner, f"{PACKAGE_ID}::price_oracle::Other", 0x502),
                _created(rpc.owner, f"{PACKAGE_ID}::price_oracle::PriceObject", 0x503),
            ]
        )
        assert gateway.find_created_record(response) == object_id(0x503)

    def test_record_type_matching(self, gateway: SubmissionGateway) -> None:
        """Package ids should compare normalized; generics never match."""
        assert gateway.matches_record_type(f"{PACKAGE_ID}::price_oracle::PriceObject")
        assert gateway.matches_record_type(
            f"{PACKAGE_ID.upper().replace('0X', '0x')}::price_oracle::PriceObject"
        )
        assert not gateway.matches_record_type("0x2::price_oracle::PriceObject")
        assert not gateway.matches_record_type(
            f"{PACKAGE_ID}::price_oracle::PriceObject<u64>"
        )
        assert not gateway.matches_record_type("not a type")
