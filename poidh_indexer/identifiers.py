"""Namespace resolution for bounty and claim ids.

Both contract generations number their bounties and claims from zero on each
chain. Current-generation ids are shifted by the number of ids the legacy
contract produced on that chain, so both fit in one keyspace:

    legacy:  global_id = local_id
    current: global_id = offset[chain_id] + local_id
"""
import logging
from types import MappingProxyType
from typing import Iterable, Mapping

from poidh_indexer.errors import UnknownIdentifierOffset
from poidh_indexer.generations import Generation, profile_for

logger = logging.getLogger(__name__)

class IdentifierResolver:
    """Maps per-generation local ids to chain-wide ids"""

    def __init__(self, offsets: Mapping[int, int]):
        for chain_id, offset in offsets.items():
            if offset < 0:
                raise ValueError(f"Namespace offset for chain {chain_id} must not be negative")
        self._offsets = MappingProxyType(dict(offsets))

    @property
    def offsets(self) -> Mapping[int, int]:
        return self._offsets

    def offset(self, chain_id: int) -> int:
        try:
            return self._offsets[chain_id]
        except KeyError:
            raise UnknownIdentifierOffset(chain_id) from None

    def resolve(self, chain_id: int, generation: Generation, local_id: int) -> int:
        """
        Resolve a local id to its chain-wide id.

        Args:
            chain_id: Chain the event was emitted on
            generation: Contract generation that emitted the id
            local_id: Id as found in the event payload

        Returns:
            The id used as primary key in the aggregate stores

        Raises:
            UnknownIdentifierOffset: Current-generation id on a chain without offset
        """
        if not profile_for(generation).applies_offset:
            return int(local_id)
        return self.offset(chain_id) + int(local_id)

    def validate(self, chain_ids: Iterable[int]) -> None:
        """Fail before processing if any indexed chain lacks an offset"""
        missing = [chain_id for chain_id in chain_ids if chain_id not in self._offsets]
        if missing:
            logger.error(f"Namespace offsets missing for chains {missing}")
            raise UnknownIdentifierOffset(missing[0])
