"""Per-masternode vote sync for proposals that are still being voted on."""
import time
from typing import Any, Dict, List

from src.data_models.governance_schemas import ProposalStatus, SyncResult, VoteData
from src.services.dash_core_client import DashCoreClient
from src.services.platform_publisher import DocumentPublisher
from src.utils.hash_utils import bytes_to_hex, normalize_hash
from src.utils.logger import logger

# Votes can still change while a proposal is in one of these states
VOTABLE_STATUSES = (ProposalStatus.ACTIVE, ProposalStatus.FUNDING)


class VoteSync:
    """Mirrors `gobject getcurrentvotes` into masternodeVote documents."""

    def __init__(self, dash_core: DashCoreClient, publisher: DocumentPublisher):
        self.dash_core = dash_core
        self.publisher = publisher

    def sync(self) -> SyncResult:
        """Run one pass over stored proposals in a votable status."""
        start_time = time.monotonic()
        result = SyncResult()

        logger.info("[VoteSync] Starting vote sync")

        proposals: List[Dict[str, Any]] = []
        for status in VOTABLE_STATUSES:
            proposals.extend(self.publisher.get_proposals_by_status(status.value))
        logger.info(f"[VoteSync] Syncing votes for {len(proposals)} proposals")

        for document in proposals:
            stored_hash = document.get("proposalHash")
            if not stored_hash:
                continue
            try:
                proposal_hash = normalize_hash(bytes_to_hex(stored_hash))
                self._sync_votes_for_proposal(proposal_hash, result)
            except Exception as e:
                logger.error(f"[VoteSync] Failed to sync votes for proposal {document.get('$id')}: {e}")
                result.errors += 1

        result.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"[VoteSync] Vote sync completed: created={result.created} updated={result.updated} "
            f"errors={result.errors} durationMs={result.duration_ms}"
        )
        return result

    def _sync_votes_for_proposal(self, proposal_hash: str, result: SyncResult) -> None:
        votes = self.dash_core.get_governance_votes(proposal_hash)
        logger.debug(f"[VoteSync] {len(votes)} votes for {proposal_hash}")

        for vote in votes:
            try:
                upsert = self.publisher.upsert_masternode_vote(VoteData(
                    proposal_hash=proposal_hash,
                    pro_tx_hash=normalize_hash(vote.pro_tx_hash),
                    outcome=vote.outcome,
                    timestamp=vote.timestamp,
                    vote_signature=vote.vote_hash,
                ))
                if upsert.created:
                    result.created += 1
                else:
                    result.updated += 1
            except Exception as e:
                logger.debug(f"[VoteSync] Failed to sync vote {proposal_hash}/{vote.pro_tx_hash}: {e}")
                result.errors += 1
