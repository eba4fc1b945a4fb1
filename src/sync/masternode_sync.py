"""Masternode registry sync from Dash Core to the document store."""
import time

from src.data_models.governance_schemas import MasternodeData, MasternodeListEntry, SyncResult
from src.services.dash_core_client import DashCoreClient
from src.services.platform_publisher import DocumentPublisher
from src.utils.hash_utils import address_to_hash160, fallback_key_hash, normalize_hash
from src.utils.logger import logger

ENABLED_STATUS = "ENABLED"


def build_masternode_data(entry: MasternodeListEntry) -> MasternodeData:
    """
    Derive the stored record for a masternode list entry.

    The voting key hash is the 20-byte payload of the voting address, or a
    hash of the proTxHash itself when the node has no voting address.
    """
    pro_tx_hash = normalize_hash(entry.pro_tx_hash)

    if entry.voting_address:
        voting_key_hash = address_to_hash160(entry.voting_address)
    else:
        voting_key_hash = fallback_key_hash(pro_tx_hash)

    return MasternodeData(
        pro_tx_hash=pro_tx_hash,
        voting_key_hash=voting_key_hash,
        owner_key_hash=address_to_hash160(entry.owner_address) if entry.owner_address else None,
        payout_address=entry.payee or None,
        is_enabled=entry.status == ENABLED_STATUS,
        last_updated_at=int(time.time() * 1000),
    )


class MasternodeSync:
    """Upserts one masternodeRecord document per registered masternode."""

    def __init__(self, dash_core: DashCoreClient, publisher: DocumentPublisher):
        self.dash_core = dash_core
        self.publisher = publisher

    def sync(self) -> SyncResult:
        """Run one pass. A failure to fetch the list propagates; per-node failures are counted."""
        start_time = time.monotonic()
        result = SyncResult()

        logger.info("[MasternodeSync] Starting masternode sync")

        mn_list = self.dash_core.get_masternode_list()
        logger.info(f"[MasternodeSync] Fetched masternode list: {len(mn_list)} entries")

        for entry in mn_list:
            try:
                upsert = self.publisher.upsert_masternode_record(build_masternode_data(entry))
                if upsert.created:
                    result.created += 1
                else:
                    result.updated += 1
            except Exception as e:
                logger.warning(f"[MasternodeSync] Failed to sync masternode {entry.pro_tx_hash}: {e}")
                result.errors += 1

        result.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"[MasternodeSync] Masternode sync completed: created={result.created} updated={result.updated} "
            f"errors={result.errors} durationMs={result.duration_ms} total={len(mn_list)}"
        )
        return result
