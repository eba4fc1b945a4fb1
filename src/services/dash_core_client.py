"""
JSON-RPC client for Dash Core.

Provides the read-only calls the sync passes need: governance objects and
votes, masternode list and count, block height and raw transactions.
"""
import re
import time
from typing import Any, Dict, List, Optional

import httpx

from src.data_models.governance_schemas import (
    GovernanceObject,
    MasternodeCount,
    MasternodeListEntry,
    RawTransaction,
    VoteOutcome,
    VoteRecord,
)
from src.utils.exceptions import DashCoreRPCError
from src.utils.logger import logger

# Vote keys look like "CTxIn(COutPoint(<proTxHash>, 0), scriptSig=)"
_VOTE_KEY_RE = re.compile(r"COutPoint\(([a-f0-9]{64})", re.IGNORECASE)

_YES_OUTCOMES = {"yes", "funding-yes"}
_NO_OUTCOMES = {"no", "funding-no"}


class DashCoreClient:
    """
    HTTP client for the Dash Core JSON-RPC interface.

    Every call is a single request bounded by the client timeout; failures
    raise DashCoreRPCError and are never retried here.
    """

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the Dash Core client.

        Args:
            url: RPC endpoint, e.g. http://127.0.0.1:9998
            username: rpcuser
            password: rpcpassword
            timeout: Request timeout in seconds (default 30.0)
            transport: Optional httpx transport (tests)
        """
        self.url = url.rstrip("/")
        self.client = httpx.Client(auth=(username, password), timeout=timeout, transport=transport)

    def _rpc(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Make a single JSON-RPC call.

        Raises:
            DashCoreRPCError: On transport errors, HTTP errors or a JSON-RPC error object
        """
        payload = {
            "jsonrpc": "1.0",
            "id": str(int(time.time() * 1000)),
            "method": method,
            "params": params or [],
        }

        try:
            response = self.client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise DashCoreRPCError(f"{type(e).__name__}: {e}", method=method) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        # Dash Core answers RPC errors with HTTP 500 and a JSON body
        if isinstance(data, dict) and data.get("error"):
            error = data["error"]
            raise DashCoreRPCError(
                error.get("message", "Unknown error"),
                method=method,
                status_code=response.status_code,
                rpc_code=error.get("code"),
            )

        if response.status_code >= 400:
            raise DashCoreRPCError(
                f"HTTP error: {response.status_code} {response.reason_phrase}",
                method=method,
                status_code=response.status_code,
            )

        if not isinstance(data, dict):
            raise DashCoreRPCError("Failed to parse response", method=method, status_code=response.status_code)

        return data.get("result")

    def test_connection(self) -> bool:
        """Return True if the node answers getblockcount."""
        try:
            self._rpc("getblockcount")
            return True
        except DashCoreRPCError as e:
            logger.error(f"[DashCore] Connection test failed: {e}")
            return False

    def get_block_count(self) -> int:
        """Get current block height."""
        return int(self._rpc("getblockcount"))

    def get_block_hash(self, height: int) -> str:
        return self._rpc("getblockhash", [height])

    def get_superblock_budget(self, height: int) -> float:
        return self._rpc("getsuperblockbudget", [height])

    def get_blockchain_info(self) -> Dict[str, Any]:
        return self._rpc("getblockchaininfo")

    def get_governance_objects(self) -> List[GovernanceObject]:
        """Get all governance objects (`gobject list all` returns a dict keyed by hash)."""
        result = self._rpc("gobject", ["list", "all"]) or {}
        return [GovernanceObject.model_validate(obj) for obj in result.values()]

    def get_governance_object(self, object_hash: str) -> GovernanceObject:
        return GovernanceObject.model_validate(self._rpc("gobject", ["get", object_hash]))

    def get_governance_votes(self, object_hash: str) -> List[VoteRecord]:
        """
        Get the current votes for a governance object.

        Values are "timestamp:outcome[:voteHash]". Unparseable entries are
        logged and skipped.
        """
        result = self._rpc("gobject", ["getcurrentvotes", object_hash]) or {}

        votes: List[VoteRecord] = []
        for key, value in result.items():
            match = _VOTE_KEY_RE.search(key)
            if not match:
                logger.warning(f"[DashCore] Could not parse vote key: {key}")
                continue

            parts = str(value).split(":")
            if len(parts) < 2 or not parts[0].isdigit():
                logger.warning(f"[DashCore] Could not parse vote value: {value}")
                continue

            outcome_str = parts[1].lower()
            if outcome_str in _YES_OUTCOMES:
                outcome = VoteOutcome.YES
            elif outcome_str in _NO_OUTCOMES:
                outcome = VoteOutcome.NO
            else:
                outcome = VoteOutcome.ABSTAIN

            votes.append(VoteRecord(
                pro_tx_hash=match.group(1).lower(),
                outcome=outcome,
                timestamp=int(parts[0]),
                vote_hash=parts[2] if len(parts) > 2 and parts[2] else None,
            ))

        return votes

    def get_masternode_list(self) -> List[MasternodeListEntry]:
        """Get the full masternode list (`masternode list json`, keyed by proTxHash)."""
        result = self._rpc("masternode", ["list", "json"]) or {}
        return [
            MasternodeListEntry.model_validate({**entry, "proTxHash": pro_tx_hash.lower()})
            for pro_tx_hash, entry in result.items()
        ]

    def get_masternode_count(self) -> MasternodeCount:
        return MasternodeCount.model_validate(self._rpc("masternode", ["count"]))

    def get_raw_transaction(self, txid: str, verbose: bool = True) -> RawTransaction:
        """Get a decoded transaction (used for collateral outputs)."""
        return RawTransaction.model_validate(self._rpc("getrawtransaction", [txid, verbose]))

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
