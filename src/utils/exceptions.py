"""
Custom exceptions for the governance oracle.

Provides a small hierarchy with error codes and a retryable flag so that
sync passes, the scheduler and the health endpoint can report failures
consistently.
"""
from typing import Any, Dict, Optional


class OracleError(Exception):
    """Base exception for all oracle errors."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        retryable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable

    def to_dict(self) -> dict:
        """Convert to dictionary for health/metrics responses."""
        return {
            "error_code": self.code,
            "error_message": self.message,
            "retryable": self.retryable,
        }


class FormatError(OracleError, ValueError):
    """Malformed hex string, byte array or address."""

    def __init__(self, message: str = "Invalid format"):
        super().__init__(message, code=400, retryable=False)


class ProposalPayloadError(OracleError):
    """A governance object's DataString could not be parsed."""

    def __init__(self, message: str = "Invalid proposal payload", proposal_hash: str = ""):
        self.proposal_hash = proposal_hash
        full_message = f"Proposal {proposal_hash}: {message}" if proposal_hash else message
        super().__init__(full_message, code=422, retryable=False)


class DashCoreRPCError(OracleError):
    """Dash Core RPC call failed (transport, HTTP or JSON-RPC level)."""

    def __init__(
        self,
        message: str,
        method: str = "",
        status_code: Optional[int] = None,
        rpc_code: Optional[int] = None,
    ):
        self.method = method
        self.status_code = status_code
        self.rpc_code = rpc_code
        prefix = f"RPC {method} failed" if method else "RPC call failed"
        # JSON-RPC level errors are deterministic; transport errors are not
        super().__init__(f"{prefix}: {message}", code=502, retryable=rpc_code is None)


class PublisherError(OracleError):
    """Document store request failed."""

    def __init__(self, message: str, status_code: int = 500, response: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.response = response
        super().__init__(
            f"Document store error {status_code}: {message}",
            code=status_code,
            retryable=status_code >= 500 or status_code == 429,
        )


# ============================================
# Exception Classification Helpers
# ============================================

def is_retryable_exception(error: Exception) -> bool:
    """Check if an exception is likely to succeed on the next scheduled run."""
    if isinstance(error, OracleError):
        return error.retryable

    retryable_names = {
        'ConnectionError',
        'TimeoutError',
        'ConnectionResetError',
        'ConnectionRefusedError',
        'BrokenPipeError',
        'ReadTimeout',
        'ConnectTimeout',
        'ConnectError',
    }

    error_type = type(error).__name__
    return error_type in retryable_names
