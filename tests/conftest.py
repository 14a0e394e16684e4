"""Pytest configuration and fixtures."""
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import pytest
from sqlalchemy.pool import StaticPool
from web3 import Web3

from poidh_indexer.config import ZERO_ADDRESS, ChainSettings
from poidh_indexer.db import Database
from poidh_indexer.dispatcher import EventDispatcher
from poidh_indexer.models.db import PriceSnapshot
from poidh_indexer.models.events import EventEnvelope
from poidh_indexer.services.storage import StorageService

CHAIN_ID = 1
DEGEN_CHAIN_ID = 666666666
OFFSET = 100
DEGEN_OFFSET = 50

ETH_USD = Decimal("2000")
DEGEN_USD = Decimal("0.01")
ONE_ETHER = 10 ** 18

# Stored addresses are checksummed, so the fixtures are too
ESCROW = Web3.to_checksum_address("0x00000000000000000000000000000000000e5c60")
LEGACY_ESCROW = Web3.to_checksum_address("0x000000000000000000000000000000000001e6ac")
NFT_CONTRACT = Web3.to_checksum_address("0x00000000000000000000000000000000000000f7")

ALICE = Web3.to_checksum_address("0xa11ce00000000000000000000000000000000001")
BOB = Web3.to_checksum_address("0xb0b0000000000000000000000000000000000002")
CAROL = Web3.to_checksum_address("0xca70100000000000000000000000000000000003")
DAVE = Web3.to_checksum_address("0xda7e000000000000000000000000000000000004")


@pytest.fixture
def chains():
    return [
        ChainSettings(
            chain_id=CHAIN_ID,
            name="mainnet",
            namespace_offset=OFFSET,
            ignore_addresses=[ESCROW, LEGACY_ESCROW],
        ),
        ChainSettings(
            chain_id=DEGEN_CHAIN_ID,
            name="degen",
            native_symbol="degen",
            price_denomination="degen_usd",
            namespace_offset=DEGEN_OFFSET,
            ignore_addresses=[ESCROW, LEGACY_ESCROW],
        ),
    ]


@pytest.fixture
def database():
    """In-memory database shared by every session of a test."""
    database = Database()
    database.init(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield database
    database.dispose()


@pytest.fixture
def prices(database):
    """Seed one price snapshot; tests without this fixture have no prices."""
    with database.session() as session:
        session.add(PriceSnapshot(eth_usd=ETH_USD, degen_usd=DEGEN_USD))


@pytest.fixture
def dispatcher(database, chains, prices):
    return EventDispatcher(database, chains, ignore_addresses=[ZERO_ADDRESS])


@pytest.fixture
def strict_dispatcher(database, chains, prices):
    return EventDispatcher(database, chains, ignore_addresses=[ZERO_ADDRESS], strict_conflicts=True)


@pytest.fixture
def fetch(database) -> Callable[[Callable[[StorageService], Any]], Any]:
    """Run a read against the store and return detached results."""
    def _fetch(read):
        session = database.get_session()
        try:
            result = read(StorageService(session))
            session.expunge_all()
            return result
        finally:
            session.rollback()
            session.close()
    return _fetch


class EventFactory:
    """Builds envelopes with increasing block positions."""

    def __init__(self):
        self.block = 1000
        self.log_index = 0

    def __call__(
        self,
        name: str,
        args: Dict[str, Any],
        *,
        chain_id: int = CHAIN_ID,
        generation: str = "legacy",
        contract: Optional[str] = None,
        tx_hash: Optional[str] = None,
    ) -> EventEnvelope:
        self.block += 1
        self.log_index += 1
        if contract is None:
            contract = LEGACY_ESCROW if generation == "legacy" else ESCROW
        return EventEnvelope(
            chain_id=chain_id,
            generation=generation,
            name=name,
            block_number=self.block,
            block_timestamp=1_700_000_000 + self.block,
            transaction_hash=tx_hash or f"0x{self.block:064x}",
            transaction_index=0,
            log_index=self.log_index,
            contract_address=contract,
            args=args,
        )


@pytest.fixture
def make_event():
    return EventFactory()
