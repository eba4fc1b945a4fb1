"""
Proposal reconciliation pass.

Mirrors Dash Core governance proposals into the document store: every
proposal currently known to the node is upserted, and every stored proposal
the node no longer reports is deleted once the upserts are done.
"""
import json
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from src.data_models.governance_schemas import (
    GOVERNANCE_OBJECT_TYPE_PROPOSAL,
    GovernanceObject,
    ProposalData,
    ProposalPayload,
    SyncResult,
)
from src.services.dash_core_client import DashCoreClient
from src.services.platform_publisher import DocumentPublisher
from src.sync.status_calculator import (
    FIRST_SUPERBLOCK_HEIGHT,
    SUPERBLOCK_INTERVAL,
    block_height_to_epoch,
    calculate_funding_threshold,
    calculate_proposal_status,
)
from src.utils.exceptions import ProposalPayloadError
from src.utils.hash_utils import bytes_to_hex, normalize_hash
from src.utils.logger import logger

DUFFS_PER_DASH = Decimal(100_000_000)

# Proposal submission burns/locks exactly this many DASH in the collateral tx
COLLATERAL_AMOUNT = Decimal(5)

# Field limits of the governance data contract
MAX_NAME_LENGTH = 40
MAX_URL_LENGTH = 256

# Compressed / uncompressed public key hex lengths
_PUBKEY_HEX_LENGTHS = (66, 130)


def dash_to_duffs(amount: Any) -> int:
    """Convert a decimal DASH amount to integer duffs, rounding half up."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid payment amount: {amount!r}") from e
    return int((value * DUFFS_PER_DASH).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def parse_proposal_payload(data_string: str, proposal_hash: str = "") -> ProposalPayload:
    """
    Parse a governance object's DataString.

    Accepts the flat JSON object and the legacy `[["proposal", {...}]]` form.

    Raises:
        ProposalPayloadError: If the string is not a JSON proposal object
    """
    try:
        data = json.loads(data_string)
    except (TypeError, ValueError) as e:
        raise ProposalPayloadError(f"DataString is not valid JSON: {e}", proposal_hash) from e

    if isinstance(data, list) and data and isinstance(data[0], list) and len(data[0]) == 2:
        data = data[0][1]

    if not isinstance(data, dict):
        raise ProposalPayloadError("DataString is not a JSON object", proposal_hash)

    try:
        return ProposalPayload.model_validate(data)
    except ValidationError as e:
        raise ProposalPayloadError(f"DataString has invalid fields: {e}", proposal_hash) from e


class ProposalSync:
    """One-way sync of governance proposals from Dash Core to the document store."""

    def __init__(
        self,
        dash_core: DashCoreClient,
        publisher: DocumentPublisher,
        superblock_interval: int = SUPERBLOCK_INTERVAL,
        first_superblock_height: int = FIRST_SUPERBLOCK_HEIGHT,
    ):
        self.dash_core = dash_core
        self.publisher = publisher
        self.superblock_interval = superblock_interval
        self.first_superblock_height = first_superblock_height

    def sync(self) -> SyncResult:
        """
        Run one reconciliation pass.

        Failing to fetch the object list, masternode count or block height
        aborts the pass before any write. Everything after that is isolated
        per proposal and reflected in the error count.
        """
        start_time = time.monotonic()
        result = SyncResult()

        logger.info("[ProposalSync] Starting proposal sync")

        gobjects = self.dash_core.get_governance_objects()
        proposals = [g for g in gobjects if g.object_type == GOVERNANCE_OBJECT_TYPE_PROPOSAL]
        logger.info(f"[ProposalSync] Found {len(proposals)} proposals in {len(gobjects)} governance objects")

        mn_count = self.dash_core.get_masternode_count()
        block_height = self.dash_core.get_block_count()
        current_epoch = block_height_to_epoch(
            block_height, self.superblock_interval, self.first_superblock_height
        )
        funding_threshold = calculate_funding_threshold(mn_count.enabled)
        logger.debug(
            f"[ProposalSync] blockHeight={block_height} epoch={current_epoch} "
            f"enabled={mn_count.enabled}/{mn_count.total} threshold={funding_threshold}"
        )

        seen_hashes: Set[str] = set()

        for gobject in proposals:
            # A proposal that fails mid-pass is still live on the node and must not be deleted
            object_hash = normalize_hash(gobject.hash)
            seen_hashes.add(object_hash)
            try:
                proposal = self.transform_proposal(gobject, mn_count.enabled, funding_threshold, current_epoch)
                if proposal is None:
                    seen_hashes.discard(object_hash)
                    continue

                upsert = self.publisher.upsert_proposal(proposal)
                if upsert.created:
                    result.created += 1
                else:
                    result.updated += 1
            except Exception as e:
                logger.error(f"[ProposalSync] Failed to sync proposal {gobject.hash}: {e}")
                result.errors += 1

        self._delete_stale_proposals(seen_hashes, result)

        result.duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"[ProposalSync] Proposal sync completed: created={result.created} updated={result.updated} "
            f"deleted={result.deleted} errors={result.errors} durationMs={result.duration_ms}"
        )
        return result

    def _delete_stale_proposals(self, seen_hashes: Set[str], result: SyncResult) -> None:
        """Delete stored proposals whose hash was not upserted in this pass."""
        try:
            stored: List[Dict[str, Any]] = self.publisher.get_all_proposals()
        except Exception as e:
            logger.error(f"[ProposalSync] Could not list stored proposals, skipping deletions: {e}")
            result.errors += 1
            return

        for document in stored:
            stored_hash = document.get("proposalHash")
            if not stored_hash:
                continue

            try:
                proposal_hash = normalize_hash(bytes_to_hex(stored_hash))
            except ValueError as e:
                logger.error(f"[ProposalSync] Stored proposal {document.get('$id')} has a bad hash: {e}")
                result.errors += 1
                continue

            if proposal_hash in seen_hashes:
                continue

            try:
                self.publisher.delete_proposal(proposal_hash)
                result.deleted += 1
                logger.info(f"[ProposalSync] Deleted stale proposal {proposal_hash}")
            except Exception as e:
                logger.error(f"[ProposalSync] Failed to delete proposal {proposal_hash}: {e}")
                result.errors += 1

    def transform_proposal(
        self,
        gobject: GovernanceObject,
        enabled_masternodes: int,
        funding_threshold: int,
        current_epoch: int,
    ) -> Optional[ProposalData]:
        """
        Build the document record for a governance object.

        Returns None (with a warning) when name, url or payment address is
        missing. Raises ProposalPayloadError on an unparseable DataString.
        """
        proposal_hash = normalize_hash(gobject.hash)
        payload = parse_proposal_payload(gobject.data_string, proposal_hash)

        missing = payload.missing_required_fields()
        if missing:
            logger.warning(f"[ProposalSync] Skipping proposal {proposal_hash}: missing {', '.join(missing)}")
            return None

        funding = gobject.funding_result
        status = calculate_proposal_status(
            payload.end_epoch,
            current_epoch,
            funding.yes_count,
            funding.no_count,
            funding_threshold,
            gobject.cached_funding,
            start_epoch=payload.start_epoch,
        )

        collateral_hash = normalize_hash(gobject.collateral_hash) if gobject.collateral_hash else None
        collateral_pub_key = self.extract_collateral_pub_key(collateral_hash) if collateral_hash else None

        return ProposalData(
            proposal_hash=proposal_hash,
            gobject_type=gobject.object_type,
            name=payload.name[:MAX_NAME_LENGTH],
            url=payload.url[:MAX_URL_LENGTH],
            payment_address=payload.payment_address,
            payment_amount=dash_to_duffs(payload.payment_amount),
            start_epoch=payload.start_epoch,
            end_epoch=payload.end_epoch,
            status=status,
            yes_count=funding.yes_count,
            no_count=funding.no_count,
            abstain_count=funding.abstain_count,
            total_masternodes=enabled_masternodes,
            funding_threshold=funding_threshold,
            last_updated_at=int(time.time() * 1000),
            created_at_block_height=gobject.creation_time,
            collateral_hash=collateral_hash,
            collateral_pub_key=collateral_pub_key,
        )

    def extract_collateral_pub_key(self, collateral_hash: str) -> Optional[str]:
        """
        Best-effort authorship key from the collateral transaction.

        Returns the public key of a P2PK collateral output, the address of any
        other collateral output, or None. Never raises.
        """
        try:
            tx = self.dash_core.get_raw_transaction(collateral_hash, True)

            for vout in tx.vout:
                if Decimal(str(vout.value)) != COLLATERAL_AMOUNT:
                    continue

                script = vout.script_pub_key

                # P2PK: "<pubkey> OP_CHECKSIG"
                if script.asm and "OP_DUP" not in script.asm and "OP_CHECKSIG" in script.asm:
                    pubkey = script.asm.split(" ")[0]
                    if len(pubkey) in _PUBKEY_HEX_LENGTHS:
                        return pubkey

                # P2PKH and others: the address is enough for address-based signing
                if script.addresses:
                    return script.addresses[0]
                if script.address:
                    return script.address

            logger.debug(f"[ProposalSync] No {COLLATERAL_AMOUNT} DASH output in collateral tx {collateral_hash}")
            return None
        except Exception as e:
            logger.debug(f"[ProposalSync] Could not extract collateral pubkey from {collateral_hash}: {e}")
            return None
