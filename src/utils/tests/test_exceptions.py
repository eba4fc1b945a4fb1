"""Tests for the error taxonomy."""
import httpx

from src.utils.exceptions import (
    DashCoreRPCError,
    FormatError,
    OracleError,
    ProposalPayloadError,
    PublisherError,
    is_retryable_exception,
)


class TestOracleErrors:

    def test_to_dict(self):
        error = OracleError("boom", code=418, retryable=False)
        assert error.to_dict() == {"error_code": 418, "error_message": "boom", "retryable": False}

    def test_rpc_error_retryable_only_without_rpc_code(self):
        transport = DashCoreRPCError("connection refused", method="getblockcount")
        rpc = DashCoreRPCError("Invalid parameter", method="gobject", status_code=500, rpc_code=-8)

        assert transport.retryable is True
        assert rpc.retryable is False
        assert rpc.rpc_code == -8
        assert "gobject" in str(rpc)

    def test_publisher_error_retryable_by_status(self):
        assert PublisherError("down", 503).retryable is True
        assert PublisherError("slow down", 429).retryable is True
        assert PublisherError("bad query", 400).retryable is False

    def test_payload_and_format_errors_are_not_retryable(self):
        assert ProposalPayloadError("bad json", "ab" * 32).retryable is False
        assert FormatError().retryable is False


class TestIsRetryableException:

    def test_oracle_errors_use_their_flag(self):
        assert is_retryable_exception(PublisherError("down", 502)) is True
        assert is_retryable_exception(FormatError("odd length")) is False

    def test_network_errors_by_name(self):
        assert is_retryable_exception(ConnectionRefusedError()) is True
        assert is_retryable_exception(httpx.ConnectTimeout("timed out")) is True

    def test_other_errors(self):
        assert is_retryable_exception(KeyError("x")) is False
