"""Routes decoded events to their handlers, one transaction per event"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from poidh_indexer.config import ChainSettings, Settings
from poidh_indexer.db import Database
from poidh_indexer.errors import UnknownChain, UnsupportedEvent
from poidh_indexer.generations import profile_for
from poidh_indexer.handlers import bounty, claims, voting  # noqa: F401  registers handlers
from poidh_indexer.handlers.base import HANDLERS, Handler, HandlerContext
from poidh_indexer.identifiers import IdentifierResolver
from poidh_indexer.models.events import EventEnvelope
from poidh_indexer.services.leaderboard import LeaderboardService
from poidh_indexer.services.prices import PriceService
from poidh_indexer.services.storage import StorageService

logger = logging.getLogger(__name__)

@dataclass
class DispatchSummary:
    """Outcome of a batch"""
    processed: int = 0
    skipped: int = 0
    per_chain: Dict[int, Dict[str, int]] = field(default_factory=dict)

    def record(self, chain_id: int, applied: bool) -> None:
        counts = self.per_chain.setdefault(chain_id, {'processed': 0, 'skipped': 0})
        key = 'processed' if applied else 'skipped'
        counts[key] += 1
        if applied:
            self.processed += 1
        else:
            self.skipped += 1

    def merge(self, other: 'DispatchSummary') -> None:
        self.processed += other.processed
        self.skipped += other.skipped
        for chain_id, counts in other.per_chain.items():
            mine = self.per_chain.setdefault(chain_id, {'processed': 0, 'skipped': 0})
            for key, value in counts.items():
                mine[key] += value

class EventDispatcher:
    """
    Applies events to the aggregate stores.

    Events of one chain must be handed over in block, transaction and log
    order. Each event runs in its own database transaction; a failure rolls
    back every write of that event and propagates to the caller.
    """

    def __init__(
            self,
            database: Database,
            chains: Iterable[ChainSettings],
            resolver: Optional[IdentifierResolver] = None,
            ignore_addresses: Iterable[str] = (),
            strict_conflicts: bool = False
    ):
        self.database = database
        self.chains: Mapping[int, ChainSettings] = {chain.chain_id: chain for chain in chains}
        self.resolver = resolver or IdentifierResolver({
            chain_id: chain.namespace_offset
            for chain_id, chain in self.chains.items()
            if chain.namespace_offset is not None
        })
        self.strict_conflicts = strict_conflicts

        # A missing offset is a configuration error, caught before any event
        self.resolver.validate(self.chains)

        shared = {address.lower() for address in ignore_addresses}
        self._ignored: Dict[int, FrozenSet[str]] = {
            chain_id: frozenset(shared | {address.lower() for address in chain.ignore_addresses})
            for chain_id, chain in self.chains.items()
        }

    @classmethod
    def from_settings(cls, database: Database, config: Settings) -> 'EventDispatcher':
        return cls(
            database,
            config.CHAINS,
            ignore_addresses=config.IGNORE_ADDRESSES,
            strict_conflicts=config.STRICT_CONFLICTS
        )

    def _route(self, event: EventEnvelope) -> Handler:
        handler = HANDLERS.get(event.name)
        if handler is None:
            raise UnsupportedEvent(f"No handler for {event.name.value} ({event.generation.value})")
        return handler

    def dispatch(self, event: Union[EventEnvelope, Dict[str, Any]]) -> bool:
        """
        Apply one event.

        Returns:
            bool: False if the event was already applied, True otherwise

        Raises:
            UnknownChain: If the chain is not configured
            pydantic.ValidationError: If the payload does not match its schema
            IndexerError: If the transition is inconsistent with stored state
            SQLAlchemyError: If the database write fails
        """
        if not isinstance(event, EventEnvelope):
            event = EventEnvelope.model_validate(event)

        chain = self.chains.get(event.chain_id)
        if chain is None:
            raise UnknownChain(f"Chain {event.chain_id} is not configured")

        handler = self._route(event)
        payload = handler.payload_model.model_validate(event.args)

        with self.database.session() as session:
            storage = StorageService(session)
            if storage.has_transaction(event.chain_id, event.transaction_hash, event.log_index):
                logger.info(
                    f"Skipping already applied {event.name.value} "
                    f"{event.transaction_hash}:{event.log_index} on chain {event.chain_id}"
                )
                return False

            prices = PriceService(storage, self.chains)
            ctx = HandlerContext(
                event=event,
                chain=chain,
                profile=profile_for(event.generation),
                storage=storage,
                resolver=self.resolver,
                prices=prices,
                leaderboard=LeaderboardService(storage, prices),
                ignored_addresses=self._ignored[chain.chain_id],
                strict_conflicts=self.strict_conflicts,
            )
            activity = handler.apply(ctx, payload)

            storage.append_transaction(
                chain_id=event.chain_id,
                transaction_index=event.transaction_index,
                tx=event.transaction_hash,
                log_index=event.log_index,
                block_number=event.block_number,
                address=activity.address,
                bounty_id=activity.bounty_id,
                claim_id=activity.claim_id,
                action=activity.action,
                timestamp=event.block_timestamp,
            )

        logger.debug(f"Applied {event.name.value} at {event.position} on chain {event.chain_id}")
        return True

    def _dispatch_partition(self, events: List[EventEnvelope]) -> DispatchSummary:
        summary = DispatchSummary()
        for event in events:
            summary.record(event.chain_id, self.dispatch(event))
        return summary

    def dispatch_all(
            self,
            events: Iterable[Union[EventEnvelope, Dict[str, Any]]],
            max_workers: int = 1
    ) -> DispatchSummary:
        """
        Apply a batch of events.

        The batch is split per chain, keeping arrival order within a chain.
        Chains share no rows, so with ``max_workers > 1`` they are applied in
        parallel threads. If a chain fails, its remaining events are not
        applied and the first error is raised once every chain has stopped.
        """
        partitions: Dict[int, List[EventEnvelope]] = {}
        for event in events:
            if not isinstance(event, EventEnvelope):
                event = EventEnvelope.model_validate(event)
            partitions.setdefault(event.chain_id, []).append(event)

        summary = DispatchSummary()
        if max_workers <= 1 or len(partitions) <= 1:
            for chain_events in partitions.values():
                summary.merge(self._dispatch_partition(chain_events))
            return summary

        errors = []
        with ThreadPoolExecutor(max_workers=min(max_workers, len(partitions))) as executor:
            futures = {
                chain_id: executor.submit(self._dispatch_partition, chain_events)
                for chain_id, chain_events in partitions.items()
            }
            for chain_id, future in futures.items():
                try:
                    summary.merge(future.result())
                except Exception as e:
                    logger.error(f"Processing stopped for chain {chain_id}: {e}")
                    errors.append(e)

        if errors:
            raise errors[0]
        return summary
