"""Latest native-asset prices for ranking"""
import logging
from decimal import Decimal
from typing import Mapping, Union

from poidh_indexer.config import ChainSettings
from poidh_indexer.errors import MissingPriceSnapshot
from poidh_indexer.services.storage import StorageService
from poidh_indexer.units import to_usd

logger = logging.getLogger(__name__)

class PriceService:
    """
    Reads the newest price snapshot for a chain's native asset.

    Prices are always the latest snapshot, never the price at the event's
    block time; the values derived here are for sorting, not accounting.
    """

    def __init__(self, storage: StorageService, chains: Mapping[int, ChainSettings]):
        self.storage = storage
        self.chains = chains
        self._snapshot = None

    def latest_price(self, chain_id: int) -> Decimal:
        """
        Get the latest USD price of a chain's native asset.

        Raises:
            MissingPriceSnapshot: If no snapshot carries a price for the chain
        """
        chain = self.chains.get(chain_id)
        denomination = chain.price_denomination if chain else 'eth_usd'

        if self._snapshot is None:
            self._snapshot = self.storage.latest_price_snapshot()
        snapshot = self._snapshot
        price = getattr(snapshot, denomination, None) if snapshot else None
        if price is None:
            logger.error(f"Missing {denomination} price for chain {chain_id}")
            raise MissingPriceSnapshot(chain_id, denomination)
        return Decimal(price)

    def to_usd(self, chain_id: int, wei: Union[int, str]) -> float:
        return to_usd(wei, self.latest_price(chain_id))

    def amount_sort(self, chain_id: int, wei: Union[int, str]) -> float:
        """Sort key for a bounty pool, its approximate USD value"""
        return self.to_usd(chain_id, wei)
