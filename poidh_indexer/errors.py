"""Exceptions raised while applying events.

Every one of these aborts the event that raised it; the surrounding
transaction is rolled back and the caller decides whether to retry.
"""

class IndexerError(Exception):
    """Base exception for event processing errors"""
    pass

class MissingPriceSnapshot(IndexerError):
    """No price is available for a chain's native asset"""

    def __init__(self, chain_id: int, denomination: str):
        self.chain_id = chain_id
        self.denomination = denomination
        super().__init__(f"No {denomination} price snapshot available for chain {chain_id}")

class MissingVotingRound(IndexerError):
    """A vote was cast for a bounty with no open voting round"""

    def __init__(self, chain_id: int, bounty_id: int):
        self.chain_id = chain_id
        self.bounty_id = bounty_id
        super().__init__(f"No open voting round for bounty {bounty_id} on chain {chain_id}")

class UnknownIdentifierOffset(IndexerError):
    """A chain has no namespace offset for current-generation ids"""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        super().__init__(f"No namespace offset configured for chain {chain_id}")

class ConflictingAggregateWrite(IndexerError):
    """A write would change a field that is expected to be immutable"""

    def __init__(self, entity: str, key: tuple, field: str, reason: str):
        self.entity = entity
        self.key = key
        self.field = field
        super().__init__(f"{entity}{key}.{field}: {reason}")

class MissingAggregate(IndexerError):
    """An event targets a bounty or claim that was never created"""

    def __init__(self, entity: str, key: tuple):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity}{key} does not exist")

class UnknownChain(IndexerError):
    """An event arrived for a chain that is not configured"""
    pass

class UnsupportedEvent(IndexerError):
    """No handler is registered for an event name"""
    pass
