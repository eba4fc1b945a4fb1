"""Tests for the Dash Core JSON-RPC client using httpx.MockTransport."""
import base64
import json

import httpx
import pytest

from src.data_models.governance_schemas import VoteOutcome
from src.services.dash_core_client import DashCoreClient
from src.utils.exceptions import DashCoreRPCError

PROPOSAL_HASH = "ab" * 32
MN_1 = "11" * 32
MN_2 = "22" * 32
MN_3 = "33" * 32


def make_client(results, requests=None, status_code=200):
    """Client whose node answers each method from `results` (callables get the params)."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if requests is not None:
            requests.append((request, body))
        result = results[body["method"]]
        if callable(result):
            result = result(body["params"])
        return httpx.Response(status_code, json={"result": result, "error": None, "id": body["id"]})

    return DashCoreClient(
        "http://127.0.0.1:9998/",
        "dashrpc",
        "secret",
        transport=httpx.MockTransport(handler),
    )


class TestRPCTransport:
    """Request framing and error mapping."""

    def test_request_format_and_basic_auth(self):
        requests = []
        client = make_client({"getblockcount": 2000000}, requests)

        assert client.get_block_count() == 2000000

        request, body = requests[0]
        assert request.method == "POST"
        assert (request.url.host, request.url.port) == ("127.0.0.1", 9998)
        assert body["jsonrpc"] == "1.0"
        assert body["method"] == "getblockcount"
        assert body["params"] == []
        expected = base64.b64encode(b"dashrpc:secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    def test_json_rpc_error_object(self):
        def handler(request):
            return httpx.Response(500, json={"result": None, "error": {"code": -8, "message": "Invalid hash"}, "id": "1"})

        client = DashCoreClient("http://node:9998", "u", "p", transport=httpx.MockTransport(handler))

        with pytest.raises(DashCoreRPCError) as exc_info:
            client.get_governance_object("zz")

        assert exc_info.value.rpc_code == -8
        assert exc_info.value.status_code == 500
        assert exc_info.value.retryable is False
        assert "Invalid hash" in str(exc_info.value)

    def test_http_error_without_body(self):
        def handler(request):
            return httpx.Response(401, text="")

        client = DashCoreClient("http://node:9998", "u", "wrong", transport=httpx.MockTransport(handler))

        with pytest.raises(DashCoreRPCError) as exc_info:
            client.get_block_count()
        assert exc_info.value.status_code == 401

    def test_transport_error_is_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = DashCoreClient("http://node:9998", "u", "p", transport=httpx.MockTransport(handler))

        with pytest.raises(DashCoreRPCError) as exc_info:
            client.get_block_count()
        assert exc_info.value.retryable is True
        assert client.test_connection() is False

    def test_test_connection_success(self):
        assert make_client({"getblockcount": 1}).test_connection() is True

    def test_chain_calls_pass_params(self):
        client = make_client({
            "getblockhash": lambda params: f"hash-{params[0]}",
            "getsuperblockbudget": lambda params: 1234.5,
            "getblockchaininfo": {"chain": "test", "blocks": 1000},
        })

        assert client.get_block_hash(42) == "hash-42"
        assert client.get_superblock_budget(2000000) == 1234.5
        assert client.get_blockchain_info()["chain"] == "test"


class TestGovernanceCalls:

    def test_get_governance_objects(self):
        listing = {
            PROPOSAL_HASH: {
                "DataHex": "7b7d",
                "DataString": "{}",
                "Hash": PROPOSAL_HASH,
                "CollateralHash": "cd" * 32,
                "ObjectType": 1,
                "CreationTime": 1700000000,
                "FundingResult": {"AbsoluteYesCount": 90, "YesCount": 100, "NoCount": 10, "AbstainCount": 3},
                "ValidResult": {"AbsoluteYesCount": 0},
                "fBlockchainValidity": True,
                "fCachedValid": True,
                "fCachedFunding": True,
                "fCachedDelete": False,
                "fCachedEndorsed": False,
            },
        }
        requests = []
        client = make_client({"gobject": listing}, requests)

        objects = client.get_governance_objects()

        assert requests[0][1]["params"] == ["list", "all"]
        assert len(objects) == 1
        gobject = objects[0]
        assert gobject.hash == PROPOSAL_HASH
        assert gobject.object_type == 1
        assert gobject.funding_result.yes_count == 100
        assert gobject.funding_result.abstain_count == 3
        assert gobject.cached_funding is True

    def test_get_governance_votes(self):
        votes = {
            f"CTxIn(COutPoint({MN_1}, 0), scriptSig=)": "1700000000:yes:" + "ff" * 32,
            f"CTxIn(COutPoint({MN_2.upper()}, 1), scriptSig=)": "1700000100:funding-no",
            f"CTxIn(COutPoint({MN_3}, 0), scriptSig=)": "1700000200:abstain",
            "garbage-key": "1700000300:yes",
            f"CTxIn(COutPoint({'44' * 32}, 0), scriptSig=)": "not-a-vote",
        }
        requests = []
        client = make_client({"gobject": votes}, requests)

        records = {v.pro_tx_hash: v for v in client.get_governance_votes(PROPOSAL_HASH)}

        assert requests[0][1]["params"] == ["getcurrentvotes", PROPOSAL_HASH]
        assert set(records) == {MN_1, MN_2, MN_3}
        assert records[MN_1].outcome == VoteOutcome.YES
        assert records[MN_1].vote_hash == "ff" * 32
        assert records[MN_2].outcome == VoteOutcome.NO
        assert records[MN_2].timestamp == 1700000100
        assert records[MN_2].vote_hash is None
        assert records[MN_3].outcome == VoteOutcome.ABSTAIN


class TestMasternodeCalls:

    def test_get_masternode_list_injects_pro_tx_hash(self):
        listing = {
            MN_1.upper(): {
                "address": "1.2.3.4:9999",
                "payee": "XpayoutAddress",
                "status": "ENABLED",
                "owneraddress": "XownerAddress",
                "votingaddress": "XvotingAddress",
                "pubkeyoperator": "8e" * 48,
            },
        }
        requests = []
        client = make_client({"masternode": listing}, requests)

        entries = client.get_masternode_list()

        assert requests[0][1]["params"] == ["list", "json"]
        assert entries[0].pro_tx_hash == MN_1
        assert entries[0].voting_address == "XvotingAddress"
        assert entries[0].owner_address == "XownerAddress"
        assert entries[0].status == "ENABLED"

    def test_get_masternode_count(self):
        client = make_client({"masternode": {"total": 3500, "enabled": 3400}})

        count = client.get_masternode_count()

        assert (count.total, count.enabled) == (3500, 3400)

    def test_get_raw_transaction(self):
        tx = {
            "txid": "cd" * 32,
            "vout": [{"value": 5.0, "n": 0, "scriptPubKey": {"asm": "02ab OP_CHECKSIG", "type": "pubkey"}}],
        }
        requests = []
        client = make_client({"getrawtransaction": tx}, requests)

        result = client.get_raw_transaction("cd" * 32)

        assert requests[0][1]["params"] == ["cd" * 32, True]
        assert result.vout[0].script_pub_key.asm == "02ab OP_CHECKSIG"

    def test_context_manager_closes_client(self):
        with make_client({"getblockcount": 1}) as client:
            client.get_block_count()
        assert client.client.is_closed
