"""
Pydantic schemas for governance data flowing from Dash Core to the document store.
"""
from enum import Enum
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# Governance object types as reported by `gobject list`
GOVERNANCE_OBJECT_TYPE_PROPOSAL = 1


class ProposalStatus(str, Enum):
    """Derived lifecycle status of a proposal."""
    PENDING = "pending"    # Voting window not open yet
    ACTIVE = "active"      # Window open, below funding threshold
    FUNDING = "funding"    # At/above threshold, receiving scheduled payment
    REJECTED = "rejected"  # Net votes below the negative threshold
    EXPIRED = "expired"    # Window closed without funding


class VoteOutcome(str, Enum):
    YES = "yes"
    NO = "no"
    ABSTAIN = "abstain"


# ==================
# Dash Core RPC Schemas
# ==================

class FundingResult(BaseModel):
    """Funding tally of a governance object."""
    model_config = ConfigDict(populate_by_name=True)

    absolute_yes_count: int = Field(0, alias="AbsoluteYesCount")
    yes_count: int = Field(0, alias="YesCount")
    no_count: int = Field(0, alias="NoCount")
    abstain_count: int = Field(0, alias="AbstainCount")


class GovernanceObject(BaseModel):
    """Raw governance object from `gobject list all`."""
    model_config = ConfigDict(populate_by_name=True)

    hash: str = Field(..., alias="Hash")
    collateral_hash: str = Field("", alias="CollateralHash")
    object_type: int = Field(..., alias="ObjectType")
    creation_time: Optional[int] = Field(None, alias="CreationTime")
    data_string: str = Field("", alias="DataString")
    data_hex: Optional[str] = Field(None, alias="DataHex")
    funding_result: FundingResult = Field(default_factory=FundingResult, alias="FundingResult")
    cached_valid: bool = Field(True, alias="fCachedValid")
    cached_funding: bool = Field(False, alias="fCachedFunding")
    cached_delete: bool = Field(False, alias="fCachedDelete")
    cached_endorsed: bool = Field(False, alias="fCachedEndorsed")


class ProposalPayload(BaseModel):
    """Proposal fields encoded in a governance object's DataString."""
    name: Optional[str] = None
    url: Optional[str] = None
    payment_address: Optional[str] = None
    # float or str depending on the serializer; converted with Decimal
    payment_amount: Union[float, str, int] = 0
    start_epoch: int = 0
    end_epoch: int = 0
    type: Optional[int] = None

    def missing_required_fields(self) -> List[str]:
        return [f for f in ("name", "url", "payment_address") if not getattr(self, f)]


class MasternodeListEntry(BaseModel):
    """Entry from `masternode list json` (proTxHash injected from the key)."""
    model_config = ConfigDict(populate_by_name=True)

    pro_tx_hash: str = Field(..., alias="proTxHash")
    address: Optional[str] = None
    payee: Optional[str] = None
    status: str = ""
    owner_address: Optional[str] = Field(None, validation_alias=AliasChoices("owneraddress", "ownerAddress", "owner_address"))
    voting_address: Optional[str] = Field(None, validation_alias=AliasChoices("votingaddress", "votingAddress", "voting_address"))
    pub_key_operator: Optional[str] = Field(None, validation_alias=AliasChoices("pubkeyoperator", "pubKeyOperator", "pub_key_operator"))


class MasternodeCount(BaseModel):
    total: int = 0
    enabled: int = 0


class ScriptPubKey(BaseModel):
    asm: str = ""
    hex: str = ""
    type: str = ""
    addresses: Optional[List[str]] = None
    address: Optional[str] = None


class TxOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # kept as received; collateral matching compares with Decimal
    value: Union[float, str, int]
    n: int = 0
    script_pub_key: ScriptPubKey = Field(default_factory=ScriptPubKey, alias="scriptPubKey")


class RawTransaction(BaseModel):
    """Verbose `getrawtransaction` result (only the fields we read)."""
    txid: str
    vout: List[TxOutput] = Field(default_factory=list)


class VoteRecord(BaseModel):
    """A current vote parsed from `gobject getcurrentvotes`."""
    pro_tx_hash: str
    outcome: VoteOutcome
    timestamp: int
    vote_hash: Optional[str] = None


# ==================
# Document Schemas
# ==================

class ProposalData(BaseModel):
    """Normalized proposal record published to the document store."""
    proposal_hash: str
    gobject_type: int
    name: str = Field(..., max_length=40)
    url: str = Field(..., max_length=256)
    payment_address: str
    payment_amount: int  # duffs
    start_epoch: int
    end_epoch: int
    status: ProposalStatus
    yes_count: int
    no_count: int
    abstain_count: int
    total_masternodes: int
    funding_threshold: int
    last_updated_at: int  # ms since epoch
    created_at_block_height: Optional[int] = None
    collateral_hash: Optional[str] = None
    collateral_pub_key: Optional[str] = None


class MasternodeData(BaseModel):
    """Voting-node registry record published to the document store."""
    pro_tx_hash: str
    voting_key_hash: str
    owner_key_hash: Optional[str] = None
    payout_address: Optional[str] = None
    is_enabled: bool
    last_updated_at: int


class VoteData(BaseModel):
    """Per-node vote record published to the document store."""
    proposal_hash: str
    pro_tx_hash: str
    outcome: VoteOutcome
    timestamp: int
    vote_signature: Optional[str] = None


class UpsertResult(BaseModel):
    created: bool


class SyncResult(BaseModel):
    """Summary of one sync pass. Reporting only, never persisted."""
    created: int = 0
    updated: int = 0
    deleted: int = 0
    errors: int = 0
    duration_ms: int = 0
