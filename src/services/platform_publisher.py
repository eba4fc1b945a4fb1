"""
Document store publisher.

Writes proposal, masternode and vote documents to the governance data
contract through the platform document gateway. Hash fields are stored as
fixed-length byte arrays (JSON lists of ints); hex-to-bytes conversion
happens here, right before every write and lookup.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from src.data_models.governance_schemas import (
    MasternodeData,
    ProposalData,
    UpsertResult,
    VoteData,
)
from src.utils.exceptions import PublisherError
from src.utils.hash_utils import hex_to_byte_list
from src.utils.logger import logger

# Document type names in the contract
DOCUMENT_TYPE_PROPOSAL = "proposal"
DOCUMENT_TYPE_MASTERNODE_RECORD = "masternodeRecord"
DOCUMENT_TYPE_MASTERNODE_VOTE = "masternodeVote"

# Largest page the gateway returns per query
QUERY_PAGE_SIZE = 100

# Fields whose change triggers a document replace
_PROPOSAL_TRACKED_FIELDS = (
    "status",
    "yesCount",
    "noCount",
    "abstainCount",
    "totalMasternodes",
    "fundingThreshold",
    "collateralPubKey",
)
_MASTERNODE_TRACKED_FIELDS = ("isEnabled", "votingKeyHash", "ownerKeyHash", "payoutAddress")
_VOTE_TRACKED_FIELDS = ("outcome", "timestamp")


class DocumentPublisher(ABC):
    """Operations the sync passes need from the document store."""

    @abstractmethod
    def upsert_proposal(self, proposal: ProposalData) -> UpsertResult:
        ...

    @abstractmethod
    def get_all_proposals(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def get_proposals_by_status(self, status: str) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def delete_proposal(self, proposal_hash: str) -> None:
        ...

    @abstractmethod
    def upsert_masternode_record(self, masternode: MasternodeData) -> UpsertResult:
        ...

    @abstractmethod
    def upsert_masternode_vote(self, vote: VoteData) -> UpsertResult:
        ...


def proposal_to_document(proposal: ProposalData) -> Dict[str, Any]:
    """Document body for a proposal; optional fields are omitted when unset."""
    data: Dict[str, Any] = {
        "proposalHash": hex_to_byte_list(proposal.proposal_hash),
        "gobjectType": proposal.gobject_type,
        "name": proposal.name,
        "url": proposal.url,
        "paymentAddress": proposal.payment_address,
        "paymentAmount": proposal.payment_amount,
        "startEpoch": proposal.start_epoch,
        "endEpoch": proposal.end_epoch,
        "status": proposal.status.value,
        "yesCount": proposal.yes_count,
        "noCount": proposal.no_count,
        "abstainCount": proposal.abstain_count,
        "totalMasternodes": proposal.total_masternodes,
        "fundingThreshold": proposal.funding_threshold,
        "lastUpdatedAt": proposal.last_updated_at,
    }
    if proposal.created_at_block_height is not None:
        data["createdAtBlockHeight"] = proposal.created_at_block_height
    if proposal.collateral_hash:
        data["collateralHash"] = hex_to_byte_list(proposal.collateral_hash)
    if proposal.collateral_pub_key:
        data["collateralPubKey"] = proposal.collateral_pub_key
    return data


def masternode_to_document(masternode: MasternodeData) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "proTxHash": hex_to_byte_list(masternode.pro_tx_hash),
        "votingKeyHash": hex_to_byte_list(masternode.voting_key_hash),
        "isEnabled": masternode.is_enabled,
        "lastUpdatedAt": masternode.last_updated_at,
    }
    if masternode.owner_key_hash:
        data["ownerKeyHash"] = hex_to_byte_list(masternode.owner_key_hash)
    if masternode.payout_address:
        data["payoutAddress"] = masternode.payout_address
    return data


def vote_to_document(vote: VoteData) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "proposalHash": hex_to_byte_list(vote.proposal_hash),
        "proTxHash": hex_to_byte_list(vote.pro_tx_hash),
        "outcome": vote.outcome.value,
        "timestamp": vote.timestamp,
    }
    if vote.vote_signature:
        data["voteSignature"] = vote.vote_signature
    return data


def has_document_changed(existing: Dict[str, Any], data: Dict[str, Any], fields: tuple) -> bool:
    """True if any tracked field differs between the stored and the new document."""
    return any(existing.get(field) != data.get(field) for field in fields)


class PlatformPublisher(DocumentPublisher):
    """
    HTTP client for the platform document gateway.

    Provides methods to:
    - Query documents of the governance contract (paginated)
    - Create, replace and delete documents owned by the oracle identity
    - Upsert proposals, masternode records and votes by natural key
    """

    def __init__(
        self,
        base_url: str,
        contract_id: str,
        identity_id: str,
        api_token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the publisher.

        Args:
            base_url: Document gateway base URL
            contract_id: Governance data contract ID
            identity_id: Identity that owns the published documents
            api_token: Bearer token for the gateway
            timeout: Request timeout in seconds (default 30.0)
            transport: Optional httpx transport (tests)
        """
        self.base_url = base_url.rstrip("/")
        self.contract_id = contract_id
        self.identity_id = identity_id
        self.client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_token}",
                "Content-Type": "application/json",
            },
        )

    def _documents_url(self, document_type: str) -> str:
        return f"{self.base_url}/contracts/{self.contract_id}/documents/{document_type}"

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        """
        Send a request and handle the response.

        Raises:
            PublisherError: On transport errors or an error status
        """
        try:
            response = self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise PublisherError(f"{type(e).__name__}: {e}", 503) from e

        if response.status_code == 204:
            return {"success": True}

        try:
            data = response.json()
        except ValueError:
            data = {"error": "Failed to parse response", "raw": response.text}

        if response.status_code >= 400:
            error_msg = "Unknown error"
            if isinstance(data, dict):
                error_msg = data.get("message") or data.get("error") or error_msg
            raise PublisherError(error_msg, response.status_code, data if isinstance(data, dict) else None)

        return data

    def test_connection(self) -> bool:
        """Return True if the governance contract can be queried."""
        try:
            self.query_documents(DOCUMENT_TYPE_PROPOSAL, [], limit=1)
            return True
        except PublisherError as e:
            logger.error(f"[Publisher] Connection test failed: {e}")
            return False

    def query_documents(
        self,
        document_type: str,
        where: List[List[Any]],
        order_by: Optional[List[List[str]]] = None,
        limit: int = QUERY_PAGE_SIZE,
        start_after: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Run a single-page query."""
        body: Dict[str, Any] = {"where": where, "limit": limit}
        if order_by:
            body["orderBy"] = order_by
        if start_after:
            body["startAfter"] = start_after

        data = self._request("POST", f"{self._documents_url(document_type)}/query", json=body)
        return list(data.get("documents", []))

    def query_all_documents(
        self,
        document_type: str,
        where: List[List[Any]],
        order_by: Optional[List[List[str]]] = None,
    ) -> List[Dict[str, Any]]:
        """Run a query and follow `startAfter` until a short page is returned."""
        documents: List[Dict[str, Any]] = []
        start_after: Optional[str] = None
        while True:
            page = self.query_documents(document_type, where, order_by, QUERY_PAGE_SIZE, start_after)
            documents.extend(page)
            if len(page) < QUERY_PAGE_SIZE:
                return documents
            start_after = page[-1].get("$id")
            if not start_after:
                logger.warning(f"[Publisher] {document_type} page without $id, stopping pagination")
                return documents

    def _find_one(self, document_type: str, where: List[List[Any]]) -> Optional[Dict[str, Any]]:
        documents = self.query_documents(document_type, where, limit=1)
        return documents[0] if documents else None

    def _create_document(self, document_type: str, data: Dict[str, Any]) -> str:
        result = self._request(
            "POST",
            self._documents_url(document_type),
            json={"ownerId": self.identity_id, "data": data},
        )
        document = result.get("document") or {}
        doc_id = document.get("$id") or result.get("$id") or "unknown"
        logger.debug(f"[Publisher] Created {document_type} document: {doc_id}")
        return doc_id

    def _replace_document(self, document_type: str, existing: Dict[str, Any], data: Dict[str, Any]) -> None:
        document_id = existing["$id"]
        self._request(
            "PUT",
            f"{self._documents_url(document_type)}/{document_id}",
            json={
                "ownerId": self.identity_id,
                "data": data,
                "revision": existing.get("$revision") or 1,
            },
        )
        logger.debug(f"[Publisher] Replaced {document_type} document: {document_id}")

    def _delete_document(self, document_type: str, document_id: str) -> None:
        self._request(
            "DELETE",
            f"{self._documents_url(document_type)}/{document_id}",
            params={"ownerId": self.identity_id},
        )
        logger.debug(f"[Publisher] Deleted {document_type} document: {document_id}")

    def _upsert(
        self,
        document_type: str,
        where: List[List[Any]],
        data: Dict[str, Any],
        tracked_fields: tuple,
        label: str,
    ) -> UpsertResult:
        existing = self._find_one(document_type, where)
        if existing is None:
            logger.debug(f"[Publisher] Creating {document_type}: {label}")
            self._create_document(document_type, data)
            return UpsertResult(created=True)

        if has_document_changed(existing, data, tracked_fields):
            logger.debug(f"[Publisher] Updating {document_type}: {label}")
            self._replace_document(document_type, existing, data)
        else:
            logger.debug(f"[Publisher] {document_type} unchanged, skipping: {label}")
        return UpsertResult(created=False)

    # ==================== Proposal Operations ====================

    def find_proposal_by_hash(self, proposal_hash: str) -> Optional[Dict[str, Any]]:
        return self._find_one(
            DOCUMENT_TYPE_PROPOSAL,
            [["proposalHash", "==", hex_to_byte_list(proposal_hash)]],
        )

    def get_all_proposals(self) -> List[Dict[str, Any]]:
        return self.query_all_documents(
            DOCUMENT_TYPE_PROPOSAL,
            [["$createdAt", ">", 0]],
            [["$createdAt", "asc"]],
        )

    def get_proposals_by_status(self, status: str) -> List[Dict[str, Any]]:
        return self.query_all_documents(
            DOCUMENT_TYPE_PROPOSAL,
            [["status", "==", status], ["endEpoch", ">", 0]],
            [["status", "asc"], ["endEpoch", "asc"]],
        )

    def upsert_proposal(self, proposal: ProposalData) -> UpsertResult:
        return self._upsert(
            DOCUMENT_TYPE_PROPOSAL,
            [["proposalHash", "==", hex_to_byte_list(proposal.proposal_hash)]],
            proposal_to_document(proposal),
            _PROPOSAL_TRACKED_FIELDS,
            proposal.proposal_hash,
        )

    def delete_proposal(self, proposal_hash: str) -> None:
        existing = self.find_proposal_by_hash(proposal_hash)
        if existing is None:
            logger.debug(f"[Publisher] Proposal already gone: {proposal_hash}")
            return
        self._delete_document(DOCUMENT_TYPE_PROPOSAL, existing["$id"])

    # ==================== Masternode Record Operations ====================

    def upsert_masternode_record(self, masternode: MasternodeData) -> UpsertResult:
        return self._upsert(
            DOCUMENT_TYPE_MASTERNODE_RECORD,
            [["proTxHash", "==", hex_to_byte_list(masternode.pro_tx_hash)]],
            masternode_to_document(masternode),
            _MASTERNODE_TRACKED_FIELDS,
            masternode.pro_tx_hash,
        )

    # ==================== Vote Operations ====================

    def upsert_masternode_vote(self, vote: VoteData) -> UpsertResult:
        return self._upsert(
            DOCUMENT_TYPE_MASTERNODE_VOTE,
            [
                ["proposalHash", "==", hex_to_byte_list(vote.proposal_hash)],
                ["proTxHash", "==", hex_to_byte_list(vote.pro_tx_hash)],
            ],
            vote_to_document(vote),
            _VOTE_TRACKED_FIELDS,
            f"{vote.proposal_hash}/{vote.pro_tx_hash}",
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
