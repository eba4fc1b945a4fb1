"""In-memory stand-ins for the node client and the document store."""
import json
from typing import Any, Dict, List, Optional

import pytest

from src.data_models.governance_schemas import (
    GovernanceObject,
    MasternodeCount,
    MasternodeData,
    MasternodeListEntry,
    ProposalData,
    RawTransaction,
    UpsertResult,
    VoteData,
    VoteRecord,
)
from src.services.platform_publisher import (
    DocumentPublisher,
    masternode_to_document,
    proposal_to_document,
    vote_to_document,
)
from src.utils.hash_utils import bytes_to_hex

# Block height inside epoch 10
EPOCH_10_HEIGHT = 212064 + 10 * 16616 + 100


class FakeDashCore:
    def __init__(self):
        self.governance_objects: List[GovernanceObject] = []
        self.masternode_count = MasternodeCount(total=1100, enabled=1000)
        self.block_count = EPOCH_10_HEIGHT
        self.raw_transactions: Dict[str, RawTransaction] = {}
        self.votes: Dict[str, List[VoteRecord]] = {}
        self.masternode_list: List[MasternodeListEntry] = []
        self.failures: Dict[str, Exception] = {}

    def _maybe_fail(self, name: str) -> None:
        if name in self.failures:
            raise self.failures[name]

    def get_governance_objects(self) -> List[GovernanceObject]:
        self._maybe_fail("get_governance_objects")
        return list(self.governance_objects)

    def get_masternode_count(self) -> MasternodeCount:
        self._maybe_fail("get_masternode_count")
        return self.masternode_count

    def get_block_count(self) -> int:
        self._maybe_fail("get_block_count")
        return self.block_count

    def get_raw_transaction(self, txid: str, verbose: bool = True) -> RawTransaction:
        self._maybe_fail("get_raw_transaction")
        return self.raw_transactions[txid]

    def get_governance_votes(self, object_hash: str) -> List[VoteRecord]:
        self._maybe_fail("get_governance_votes")
        return list(self.votes.get(object_hash, []))

    def get_masternode_list(self) -> List[MasternodeListEntry]:
        self._maybe_fail("get_masternode_list")
        return list(self.masternode_list)


class InMemoryPublisher(DocumentPublisher):
    """Keeps documents in dicts keyed by their natural key, in hex."""

    def __init__(self):
        self.proposals: Dict[str, Dict[str, Any]] = {}
        self.masternodes: Dict[str, Dict[str, Any]] = {}
        self.votes: Dict[tuple, Dict[str, Any]] = {}
        self.deleted: List[str] = []
        self.upserted: List[str] = []
        self.fail_upsert_for: set = set()
        self.fail_delete_for: set = set()
        self.fail_listing: Optional[Exception] = None
        self._next_id = 0

    def _new_id(self) -> str:
        self._next_id += 1
        return f"doc{self._next_id}"

    def _store(self, store: Dict, key: Any, data: Dict[str, Any]) -> UpsertResult:
        existing = store.get(key)
        if existing is None:
            store[key] = {"$id": self._new_id(), "$revision": 1, **data}
            return UpsertResult(created=True)
        store[key] = {"$id": existing["$id"], "$revision": existing["$revision"] + 1, **data}
        return UpsertResult(created=False)

    def seed_proposal(self, proposal_hash: str, status: str = "active") -> None:
        self.proposals[proposal_hash] = {
            "$id": self._new_id(),
            "$revision": 1,
            "proposalHash": list(bytes.fromhex(proposal_hash)),
            "status": status,
        }

    def upsert_proposal(self, proposal: ProposalData) -> UpsertResult:
        if proposal.proposal_hash in self.fail_upsert_for:
            raise RuntimeError("store write failed")
        self.upserted.append(proposal.proposal_hash)
        return self._store(self.proposals, proposal.proposal_hash, proposal_to_document(proposal))

    def get_all_proposals(self) -> List[Dict[str, Any]]:
        if self.fail_listing is not None:
            raise self.fail_listing
        return list(self.proposals.values())

    def get_proposals_by_status(self, status: str) -> List[Dict[str, Any]]:
        if self.fail_listing is not None:
            raise self.fail_listing
        return [doc for doc in self.proposals.values() if doc.get("status") == status]

    def delete_proposal(self, proposal_hash: str) -> None:
        if proposal_hash in self.fail_delete_for:
            raise RuntimeError("store delete failed")
        self.deleted.append(proposal_hash)
        self.proposals.pop(proposal_hash, None)

    def upsert_masternode_record(self, masternode: MasternodeData) -> UpsertResult:
        return self._store(self.masternodes, masternode.pro_tx_hash, masternode_to_document(masternode))

    def upsert_masternode_vote(self, vote: VoteData) -> UpsertResult:
        if vote.pro_tx_hash in self.fail_upsert_for:
            raise RuntimeError("store write failed")
        return self._store(self.votes, (vote.proposal_hash, vote.pro_tx_hash), vote_to_document(vote))

    def stored_proposal_hashes(self) -> set:
        return {bytes_to_hex(doc["proposalHash"]) for doc in self.proposals.values()}


def build_gobject(
    object_hash: str,
    name: Optional[str] = "Proposal",
    url: str = "https://dashcentral.org/p/proposal",
    payment_address: str = "yNsWkgPLN1u7p5dfWYnasYnyjhrL6ttvw8",
    payment_amount: Any = 12.5,
    start_epoch: int = 5,
    end_epoch: int = 20,
    yes: int = 0,
    no: int = 0,
    abstain: int = 0,
    cached_funding: bool = False,
    collateral_hash: str = "",
    object_type: int = 1,
    data_string: Optional[str] = None,
) -> GovernanceObject:
    payload = {
        "url": url,
        "payment_address": payment_address,
        "payment_amount": payment_amount,
        "start_epoch": start_epoch,
        "end_epoch": end_epoch,
        "type": 1,
    }
    if name is not None:
        payload["name"] = name

    return GovernanceObject.model_validate({
        "Hash": object_hash,
        "CollateralHash": collateral_hash,
        "ObjectType": object_type,
        "CreationTime": 1700000000,
        "DataString": data_string if data_string is not None else json.dumps(payload),
        "FundingResult": {"AbsoluteYesCount": yes - no, "YesCount": yes, "NoCount": no, "AbstainCount": abstain},
        "fCachedFunding": cached_funding,
    })


@pytest.fixture
def dash_core():
    return FakeDashCore()


@pytest.fixture
def publisher():
    return InMemoryPublisher()


@pytest.fixture
def make_gobject():
    return build_gobject
