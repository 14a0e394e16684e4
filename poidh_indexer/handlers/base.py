"""Shared handler context and the event handler registry"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional, Type

from poidh_indexer.config import ChainSettings
from poidh_indexer.errors import ConflictingAggregateWrite, MissingAggregate
from poidh_indexer.generations import GenerationProfile
from poidh_indexer.identifiers import IdentifierResolver
from poidh_indexer.models.db import Bounty
from poidh_indexer.models.events import EventEnvelope, EventName, EventPayload
from poidh_indexer.services.leaderboard import LeaderboardService
from poidh_indexer.services.prices import PriceService
from poidh_indexer.services.storage import StorageService
from poidh_indexer.units import format_ether

logger = logging.getLogger(__name__)

# Address recorded for activity rows with no acting account
NO_ACTOR = "0x0"

@dataclass
class Activity:
    """Transaction log content produced by a handler"""
    action: str
    address: str
    bounty_id: Optional[int] = None
    claim_id: Optional[int] = None

@dataclass
class HandlerContext:
    """Everything a handler may read or write while applying one event"""
    event: EventEnvelope
    chain: ChainSettings
    profile: GenerationProfile
    storage: StorageService
    resolver: IdentifierResolver
    prices: PriceService
    leaderboard: LeaderboardService
    ignored_addresses: FrozenSet[str]
    strict_conflicts: bool = False

    @property
    def chain_id(self) -> int:
        return self.event.chain_id

    @property
    def timestamp(self) -> int:
        return self.event.block_timestamp

    def resolve(self, local_id: int) -> int:
        """Chain-wide id for a bounty or claim id found in the payload"""
        return self.resolver.resolve(self.chain_id, self.profile.generation, local_id)

    def require_bounty(self, bounty_id: int) -> Bounty:
        bounty = self.storage.get_bounty(self.chain_id, bounty_id)
        if bounty is None:
            raise MissingAggregate('Bounty', (self.chain_id, bounty_id))
        return bounty

    def is_ignored(self, address: str) -> bool:
        return address.lower() in self.ignored_addresses

    def conflict(self, error: ConflictingAggregateWrite) -> None:
        """Leave the conflicting field untouched; raise instead when running strict"""
        if self.strict_conflicts:
            raise error
        logger.warning(
            f"Conflicting write ignored ({self.event.name.value} "
            f"{self.event.transaction_hash}:{self.event.log_index}): {error}"
        )

    def native_amount(self, wei: int, sign: str = '') -> str:
        return f"{sign}{format_ether(wei)} {self.chain.native_symbol}"

HandlerFunc = Callable[[HandlerContext, EventPayload], Activity]

@dataclass(frozen=True)
class Handler:
    name: EventName
    payload_model: Type[EventPayload]
    apply: HandlerFunc

HANDLERS: Dict[EventName, Handler] = {}

def handles(name: EventName, payload_model: Type[EventPayload]) -> Callable[[HandlerFunc], HandlerFunc]:
    """Register a function as the handler for an event name"""
    def register(func: HandlerFunc) -> HandlerFunc:
        if name in HANDLERS:
            raise ValueError(f"Handler for {name.value} registered twice")
        HANDLERS[name] = Handler(name=name, payload_model=payload_model, apply=func)
        return func
    return register
