"""Error types for the publish pipeline.

Every failure the oracle can recover from (or must abort on) has its own
class, so callers decide policy with ``except`` clauses instead of matching
message strings::

    OracleError
    ├── ConfigError                 fatal at startup
    ├── FetchError                  one source failed, sample becomes None
    ├── RegistryError               symbol -> record mapping unavailable
    ├── FundingError                no fee-paying coin for the signer
    ├── EncodingError               value not representable in BCS
    └── ChainError                  node unreachable or request rejected
        ├── RpcError                JSON-RPC error object
        ├── ChainExecutionError     transaction executed with failure status
        │   └── StaleObjectError    object reference no longer current
        └── MissingCreatedObjectError
"""

from __future__ import annotations


class OracleError(Exception):
    """Base exception for all oracle errors."""

    pass


class ConfigError(OracleError):
    """Raised when configuration or bootstrap inputs are invalid."""

    pass


class FetchError(OracleError):
    """Raised when a price source cannot deliver a sample."""

    pass


class RegistryError(OracleError):
    """Raised when the symbol registry cannot be read, written or resolved."""

    pass


class FundingError(OracleError):
    """Raised when the signer owns no coin to pay for gas."""

    pass


class EncodingError(OracleError):
    """Raised when a call argument cannot be BCS encoded."""

    pass


class ChainError(OracleError):
    """Raised when a chain request fails before producing effects."""

    pass


class RpcError(ChainError):
    """JSON-RPC error returned by the full node.

    :ivar code: JSON-RPC error code.
    :ivar method: RPC method that failed.
    """

    def __init__(self, code: int, message: str, method: str = ""):
        """Initialize the RPC error.

        :param code: JSON-RPC error code.
        :param message: Error message reported by the node.
        :param method: RPC method name.
        """
        self.code = code
        self.method = method
        super().__init__(f"{method} failed ({code}): {message}" if method else message)


class ChainExecutionError(ChainError):
    """Raised when a transaction was rejected or executed unsuccessfully.

    :ivar digest: Transaction digest, when the chain reported one.
    :ivar reason: Failure reason reported by the chain.
    """

    def __init__(self, reason: str, digest: str | None = None):
        """Initialize the execution error.

        :param reason: Failure reason reported by the chain.
        :param digest: Transaction digest if known.
        """
        self.reason = reason
        self.digest = digest
        message = f"Transaction failed: {reason}"
        if digest:
            message += f" (digest {digest})"
        super().__init__(message)


class StaleObjectError(ChainExecutionError):
    """Raised when a transaction referenced an outdated object version."""

    pass


class MissingCreatedObjectError(ChainError):
    """Raised when a creation succeeded but no matching object was created.

    This points at a package or module mismatch and is not retryable.

    :ivar digest: Digest of the successful transaction.
    """

    def __init__(self, expected_type: str, digest: str):
        """Initialize the error.

        :param expected_type: Fully qualified type that was looked for.
        :param digest: Digest of the transaction.
        """
        self.expected_type = expected_type
        self.digest = digest
        super().__init__(
            f"No created object of type {expected_type} owned by signer "
            f"in transaction {digest}"
        )
