"""Leaderboard accumulation"""
import logging
from typing import Collection, Iterable

from poidh_indexer.models.db import Bounty
from poidh_indexer.services.prices import PriceService
from poidh_indexer.services.storage import StorageService

logger = logging.getLogger(__name__)

class LeaderboardService:
    """
    Maintains per-chain leaderboard rows.

    earned and paid are event-sourced deltas applied with atomic upserts.
    nfts is derived state, always overwritten with a fresh count of the
    claims an address owns on the chain.
    """

    def __init__(self, storage: StorageService, prices: PriceService):
        self.storage = storage
        self.prices = prices

    def settle_accepted_claim(self, bounty: Bounty, claim_issuer: str) -> None:
        """Credit the claim issuer with the pool and every participant with their stake"""
        chain_id = bounty.chain_id
        earned = self.prices.to_usd(chain_id, bounty.amount)
        self.storage.increment_leaderboard(chain_id, claim_issuer, earned=earned)

        participations = self.storage.participations(chain_id, bounty.id)
        for participation in participations:
            paid = self.prices.to_usd(chain_id, participation.amount)
            self.storage.increment_leaderboard(chain_id, participation.user_address, paid=paid)

        logger.info(
            f"Settled bounty {bounty.id} on chain {chain_id}: "
            f"{claim_issuer} earned {earned:.2f} USD, {len(participations)} participants paid"
        )

    def refresh_nft_counts(self, chain_id: int, addresses: Iterable[str],
                           ignored: Collection[str]) -> None:
        """Recount owned claims for each address that is not a sentinel"""
        for address in dict.fromkeys(addresses):
            if address.lower() in ignored:
                continue
            count = self.storage.count_claims_owned(chain_id, address)
            self.storage.set_leaderboard_nfts(chain_id, address, count)
