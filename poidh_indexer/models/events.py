"""Inbound event schemas.

An `EventEnvelope` is one decoded contract log as handed over by the ingestion
layer. Its `args` are validated against the payload model registered for the
event name. Payload fields accept the ABI argument names (``bountyId``) as
well as their snake_case equivalents.
"""
from enum import Enum
from typing import Annotated, Any, Dict, Optional
from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from web3 import Web3

from poidh_indexer.generations import Generation

# EVM addresses are case-insensitive hex; every address is stored in checksum form
Address = Annotated[str, AfterValidator(Web3.to_checksum_address)]

class EventName(str, Enum):
    BOUNTY_CREATED = "BountyCreated"
    BOUNTY_CANCELLED = "BountyCancelled"
    BOUNTY_JOINED = "BountyJoined"
    WITHDRAW_FROM_OPEN_BOUNTY = "WithdrawFromOpenBounty"
    CLAIM_CREATED = "ClaimCreated"
    CLAIM_ACCEPTED = "ClaimAccepted"
    CLAIM_SUBMITTED_FOR_VOTE = "ClaimSubmittedForVote"
    VOTE_CLAIM = "VoteClaim"
    VOTING_RESOLVED = "VotingResolved"
    RESET_VOTING_PERIOD = "ResetVotingPeriod"
    TRANSFER = "Transfer"

class EventEnvelope(BaseModel):
    """One decoded log with its chain and block context"""
    chain_id: int
    generation: Generation
    name: EventName
    block_number: int
    block_timestamp: int
    transaction_hash: str
    transaction_index: int
    log_index: int
    contract_address: Address = Field(..., description="Contract that emitted the log")
    args: Dict[str, Any] = Field(default_factory=dict)

    @property
    def position(self) -> tuple:
        return (self.block_number, self.transaction_index, self.log_index)

class EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

class BountyCreated(EventPayload):
    id: int
    name: str = ''
    description: str = ''
    amount: int = Field(..., ge=0)
    issuer: Address
    is_multiplayer: bool = Field(False, alias='isMultiplayer')

class BountyCancelled(EventPayload):
    bounty_id: int = Field(..., alias='bountyId')
    issuer: Address

class BountyJoined(EventPayload):
    bounty_id: int = Field(..., alias='bountyId')
    participant: Address
    amount: int = Field(..., ge=0)
    balance: Optional[int] = Field(None, ge=0, description="Pool balance after the join")
    deadline: Optional[int] = None

class WithdrawFromOpenBounty(EventPayload):
    bounty_id: int = Field(..., alias='bountyId')
    participant: Address
    amount: int = Field(..., ge=0)
    balance: Optional[int] = Field(None, ge=0, description="Pool balance after the withdrawal")

class ClaimCreated(EventPayload):
    id: int
    bounty_id: int = Field(..., alias='bountyId')
    issuer: Address
    name: str = ''
    description: str = ''
    image_uri: Optional[str] = Field(None, alias='imageUri')

class ClaimAccepted(EventPayload):
    bounty_id: int = Field(..., alias='bountyId')
    claim_id: int = Field(..., alias='claimId')
    claim_issuer: Address = Field(..., alias='claimIssuer')

class ClaimSubmittedForVote(EventPayload):
    bounty_id: int = Field(..., alias='bountyId')
    claim_id: int = Field(..., alias='claimId')
    deadline: Optional[int] = None

class VoteClaim(EventPayload):
    bounty_id: int = Field(..., alias='bountyId')
    claim_id: Optional[int] = Field(None, alias='claimId')
    voter: Address
    support: bool = Field(..., alias='vote')
    deadline: Optional[int] = None

class VotingResolved(EventPayload):
    bounty_id: int = Field(..., alias='bountyId')
    passed: bool

class ResetVotingPeriod(EventPayload):
    bounty_id: int = Field(..., alias='bountyId')
    deadline: Optional[int] = None

class Transfer(EventPayload):
    from_address: Address = Field(..., alias='from')
    to_address: Address = Field(..., alias='to')
    token_id: int = Field(..., alias='tokenId')
    token_uri: Optional[str] = Field(None, alias='tokenUri')
