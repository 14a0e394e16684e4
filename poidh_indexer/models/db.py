"""SQLAlchemy database models for indexed marketplace state"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class Price(TypeDecorator):
    """
    Exact decimal price.
    NUMERIC on PostgreSQL; SQLite has no decimal storage, so the value is kept as text there.
    """
    impl = Numeric(precision=36, scale=18)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'sqlite':
            return dialect.type_descriptor(String())
        return dialect.type_descriptor(Numeric(precision=36, scale=18, asdecimal=True))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = Decimal(str(value))
        return str(value) if dialect.name == 'sqlite' else value

    def process_result_value(self, value, dialect):
        return None if value is None else Decimal(value)

class User(Base):
    """Any address seen as issuer, participant or claim holder, on any chain"""
    __tablename__ = 'users'

    address = Column(String, primary_key=True)

class Bounty(Base):
    """
    Current state of a bounty.
    `amount` is the live staked pool in wei, stored as a decimal string.
    """
    __tablename__ = 'bounties'

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    chain_id = Column(BigInteger, primary_key=True, autoincrement=False)
    on_chain_id = Column(BigInteger, nullable=False)
    title = Column(Text, nullable=False, default='')
    description = Column(Text, nullable=False, default='')
    amount = Column(String, nullable=False, default='0')
    amount_sort = Column(Float, nullable=False, default=0.0)
    issuer = Column(String, nullable=False, index=True)
    is_multiplayer = Column(Boolean, nullable=False, default=False)
    is_joined_bounty = Column(Boolean, nullable=False, default=False)
    is_canceled = Column(Boolean, nullable=False, default=False)
    is_voting = Column(Boolean, nullable=False, default=False)
    in_progress = Column(Boolean, nullable=False, default=True)
    deadline = Column(BigInteger, nullable=True)
    created_at = Column(BigInteger, nullable=False)

class Claim(Base):
    """
    A submission against a bounty, also an NFT.
    `owner` tracks the token holder and is independent of `issuer`.
    """
    __tablename__ = 'claims'

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    chain_id = Column(BigInteger, primary_key=True, autoincrement=False)
    on_chain_id = Column(BigInteger, nullable=False)
    title = Column(Text, nullable=False, default='')
    description = Column(Text, nullable=False, default='')
    url = Column(Text, nullable=False, default='')
    issuer = Column(String, nullable=False)
    owner = Column(String, nullable=False, index=True)
    is_accepted = Column(Boolean, nullable=False, default=False)
    bounty_id = Column(BigInteger, nullable=True, index=True)

class ParticipationBounty(Base):
    """Current stake of one address in one bounty"""
    __tablename__ = 'participations_bounties'

    chain_id = Column(BigInteger, primary_key=True, autoincrement=False)
    bounty_id = Column(BigInteger, primary_key=True, autoincrement=False)
    user_address = Column(String, primary_key=True)
    amount = Column(String, nullable=False)

class VotingRound(Base):
    """One yes/no tally over a claim submitted for vote"""
    __tablename__ = 'voting_rounds'

    chain_id = Column(BigInteger, primary_key=True, autoincrement=False)
    bounty_id = Column(BigInteger, primary_key=True, autoincrement=False)
    round = Column(Integer, primary_key=True, autoincrement=False)
    claim_id = Column(BigInteger, nullable=False)
    yes = Column(Integer, nullable=False, default=0)
    no = Column(Integer, nullable=False, default=0)
    deadline = Column(BigInteger, nullable=True)

class LeaderboardEntry(Base):
    """
    Per-chain totals for an address.
    earned/paid are accumulated in USD, nfts is a recomputed count.
    """
    __tablename__ = 'leaderboard'

    chain_id = Column(BigInteger, primary_key=True, autoincrement=False)
    address = Column(String, primary_key=True)
    earned = Column(Float, nullable=False, default=0.0)
    paid = Column(Float, nullable=False, default=0.0)
    nfts = Column(Integer, nullable=False, default=0)

class Transaction(Base):
    """
    Append-only activity log, one row per processed event.
    The (chain_id, tx, log_index) key doubles as the duplicate-delivery guard.
    """
    __tablename__ = 'transactions'
    __table_args__ = (
        UniqueConstraint('chain_id', 'tx', 'log_index', name='uq_transactions_chain_tx_log'),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    chain_id = Column(BigInteger, nullable=False, index=True)
    transaction_index = Column(Integer, nullable=False)
    tx = Column(String, nullable=False)
    log_index = Column(Integer, nullable=False)
    block_number = Column(BigInteger, nullable=False)
    address = Column(String, nullable=False)
    bounty_id = Column(BigInteger, nullable=True, index=True)
    claim_id = Column(BigInteger, nullable=True)
    action = Column(String, nullable=False)
    timestamp = Column(BigInteger, nullable=False)

class PriceSnapshot(Base):
    """
    Native asset prices in USD, written by the price ingestion job.
    The indexer only ever reads the newest row.
    """
    __tablename__ = 'price_snapshots'

    id = Column(Integer, primary_key=True, autoincrement=True)
    eth_usd = Column(Price, nullable=True)
    degen_usd = Column(Price, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
