"""Tests for the per-masternode vote sync."""
import pytest

from src.data_models.governance_schemas import VoteOutcome, VoteRecord
from src.sync.vote_sync import VoteSync
from src.utils.exceptions import DashCoreRPCError

HASH_ACTIVE = "a" * 64
HASH_FUNDING = "f" * 64
HASH_EXPIRED = "e" * 64
MN_1 = "1" * 64
MN_2 = "2" * 64


def vote(pro_tx_hash, outcome=VoteOutcome.YES, timestamp=1700000000):
    return VoteRecord(pro_tx_hash=pro_tx_hash, outcome=outcome, timestamp=timestamp)


@pytest.fixture
def seeded_publisher(publisher):
    publisher.seed_proposal(HASH_ACTIVE, status="active")
    publisher.seed_proposal(HASH_FUNDING, status="funding")
    publisher.seed_proposal(HASH_EXPIRED, status="expired")
    return publisher


class TestVoteSync:

    def test_syncs_votes_for_votable_proposals_only(self, dash_core, seeded_publisher):
        dash_core.votes = {
            HASH_ACTIVE: [vote(MN_1), vote(MN_2, VoteOutcome.NO)],
            HASH_FUNDING: [vote(MN_1, VoteOutcome.ABSTAIN)],
            HASH_EXPIRED: [vote(MN_1)],
        }

        result = VoteSync(dash_core, seeded_publisher).sync()

        assert result.created == 3
        assert result.errors == 0
        assert set(seeded_publisher.votes) == {
            (HASH_ACTIVE, MN_1),
            (HASH_ACTIVE, MN_2),
            (HASH_FUNDING, MN_1),
        }
        assert seeded_publisher.votes[(HASH_ACTIVE, MN_2)]["outcome"] == "no"

    def test_changed_vote_is_an_update(self, dash_core, seeded_publisher):
        dash_core.votes = {HASH_ACTIVE: [vote(MN_1)]}
        sync = VoteSync(dash_core, seeded_publisher)
        sync.sync()

        dash_core.votes = {HASH_ACTIVE: [vote(MN_1, VoteOutcome.NO, timestamp=1700000500)]}
        result = sync.sync()

        assert (result.created, result.updated) == (0, 1)
        stored = seeded_publisher.votes[(HASH_ACTIVE, MN_1)]
        assert stored["outcome"] == "no"
        assert stored["timestamp"] == 1700000500

    def test_vote_write_failure_is_counted(self, dash_core, seeded_publisher):
        seeded_publisher.fail_upsert_for = {MN_2}
        dash_core.votes = {HASH_ACTIVE: [vote(MN_1), vote(MN_2)]}

        result = VoteSync(dash_core, seeded_publisher).sync()

        assert result.created == 1
        assert result.errors == 1

    def test_rpc_failure_for_one_proposal_is_isolated(self, dash_core, seeded_publisher):
        dash_core.failures["get_governance_votes"] = DashCoreRPCError("timeout", method="gobject")

        result = VoteSync(dash_core, seeded_publisher).sync()

        assert result.errors == 2
        assert result.created == 0

    def test_listing_failure_propagates(self, dash_core, seeded_publisher):
        seeded_publisher.fail_listing = RuntimeError("query failed")

        with pytest.raises(RuntimeError):
            VoteSync(dash_core, seeded_publisher).sync()
