"""
Proposal status and funding threshold calculations.

Pure functions, no I/O. Epoch numbers are superblock cycles counted from the
first superblock of the network; an epoch covers the heights
[first + epoch * interval, first + (epoch + 1) * interval).
"""
from typing import Optional

from src.data_models.governance_schemas import ProposalStatus

# Dash mainnet superblock cycle (blocks)
SUPERBLOCK_INTERVAL = 16616

# First mainnet superblock height
FIRST_SUPERBLOCK_HEIGHT = 212064

# (superblock interval, first superblock height) per network
NETWORK_SUPERBLOCK_PARAMS = {
    "mainnet": (SUPERBLOCK_INTERVAL, FIRST_SUPERBLOCK_HEIGHT),
    "testnet": (24, 4200),
}

# Share of enabled masternodes whose net yes votes are needed for funding
FUNDING_THRESHOLD_PERCENT = 10


def block_height_to_epoch(
    block_height: int,
    interval: int = SUPERBLOCK_INTERVAL,
    first_superblock_height: int = FIRST_SUPERBLOCK_HEIGHT,
) -> int:
    """Convert a block height to an epoch number (0 before the first superblock)."""
    if block_height < 0:
        raise ValueError(f"block height must be non-negative, got {block_height}")
    if block_height < first_superblock_height:
        return 0
    return (block_height - first_superblock_height) // interval


def epoch_to_block_height(
    epoch: int,
    interval: int = SUPERBLOCK_INTERVAL,
    first_superblock_height: int = FIRST_SUPERBLOCK_HEIGHT,
) -> int:
    """First block height of an epoch."""
    return first_superblock_height + epoch * interval


def get_next_superblock_height(
    block_height: int,
    interval: int = SUPERBLOCK_INTERVAL,
    first_superblock_height: int = FIRST_SUPERBLOCK_HEIGHT,
) -> int:
    """Height of the superblock that starts the epoch after `block_height`'s."""
    if block_height < first_superblock_height:
        return first_superblock_height
    current_epoch = block_height_to_epoch(block_height, interval, first_superblock_height)
    return epoch_to_block_height(current_epoch + 1, interval, first_superblock_height)


def calculate_funding_threshold(enabled_masternodes: int) -> int:
    """
    Minimum net yes votes (yes - no) needed for funding.

    10% of enabled masternodes, rounded up: 1000 -> 100, 1001 -> 101.
    """
    if enabled_masternodes < 0:
        raise ValueError(f"enabled masternode count must be non-negative, got {enabled_masternodes}")
    return -(-enabled_masternodes * FUNDING_THRESHOLD_PERCENT // 100)


def calculate_net_votes(yes_count: int, no_count: int) -> int:
    return yes_count - no_count


def calculate_proposal_status(
    end_epoch: int,
    current_epoch: int,
    yes_count: int,
    no_count: int,
    funding_threshold: int,
    cached_funding: bool,
    start_epoch: Optional[int] = None,
) -> ProposalStatus:
    """
    Classify a proposal.

    Rules, in order:
    - pending: `start_epoch` is known and the current epoch precedes it
    - window open (current < end): funding if net >= threshold,
      rejected if net < -threshold, otherwise active
    - window closed (current >= end, the end epoch itself included):
      funding if Dash Core's cached funding flag is set, rejected if
      net < -threshold, otherwise expired

    Abstain votes never count. The closed-window branch defers to the
    node's cached flag so repeated passes at the boundary agree.
    """
    net_votes = calculate_net_votes(yes_count, no_count)

    if start_epoch is not None and current_epoch < start_epoch:
        return ProposalStatus.PENDING

    if current_epoch < end_epoch:
        if net_votes >= funding_threshold:
            return ProposalStatus.FUNDING
        if net_votes < -funding_threshold:
            return ProposalStatus.REJECTED
        return ProposalStatus.ACTIVE

    if cached_funding:
        return ProposalStatus.FUNDING
    if net_votes < -funding_threshold:
        return ProposalStatus.REJECTED
    return ProposalStatus.EXPIRED


def calculate_votes_needed(yes_count: int, no_count: int, funding_threshold: int) -> int:
    """Net yes votes still missing to reach the threshold."""
    return max(0, funding_threshold - calculate_net_votes(yes_count, no_count))


def calculate_vote_progress(yes_count: int, no_count: int, funding_threshold: int) -> float:
    """Progress toward the threshold as a percentage clamped to 0..100."""
    if funding_threshold == 0:
        return 100.0
    progress = calculate_net_votes(yes_count, no_count) / funding_threshold * 100
    return min(100.0, max(0.0, progress))
