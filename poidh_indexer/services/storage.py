"""Database storage service for indexed aggregates"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Table, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from poidh_indexer.models.db import (
    Bounty,
    Claim,
    LeaderboardEntry,
    ParticipationBounty,
    PriceSnapshot,
    Transaction,
    User,
    VotingRound,
)

logger = logging.getLogger(__name__)

# Tally column incremented for a vote, keyed by the vote's support flag
VOTE_COLUMNS = {True: 'yes', False: 'no'}

# Leaderboard totals that accumulate deltas
LEADERBOARD_TOTALS = ('earned', 'paid')

_DIALECT_INSERTS = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}

class StorageService:
    """Handles all database operations for one event's transaction"""

    def __init__(self, session: Session):
        if not session:
            raise ValueError("Database session is required")
        self.session = session

    def _insert(self, table: Table):
        """Dialect insert supporting ON CONFLICT clauses"""
        dialect = self.session.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect](table)
        except KeyError:
            raise NotImplementedError(f"Upserts are not supported on {dialect}") from None

    def _execute(self, statement, description: str):
        """Flush pending ORM changes, then run a core statement"""
        try:
            self.session.flush()
            return self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error(f"Database error {description}: {e}")
            raise

    # Users

    def insert_user(self, address: str) -> None:
        """Register an address, ignoring it if already known"""
        statement = self._insert(User.__table__).values(address=address).on_conflict_do_nothing(
            index_elements=['address']
        )
        self._execute(statement, f"inserting user {address}")

    # Transaction log

    def has_transaction(self, chain_id: int, tx: str, log_index: int) -> bool:
        """Check whether an event occurrence has already been applied"""
        return self.session.query(Transaction.id).filter_by(
            chain_id=chain_id, tx=tx, log_index=log_index
        ).first() is not None

    def append_transaction(self, **values: Any) -> Transaction:
        """Append one activity row; rows are never updated afterwards"""
        entry = Transaction(**values)
        self.session.add(entry)
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Database error appending transaction log entry: {e}")
            raise
        return entry

    def transactions(self, chain_id: int, bounty_id: Optional[int] = None) -> List[Transaction]:
        query = self.session.query(Transaction).filter_by(chain_id=chain_id)
        if bounty_id is not None:
            query = query.filter_by(bounty_id=bounty_id)
        return query.order_by(Transaction.block_number, Transaction.transaction_index,
                              Transaction.log_index).all()

    # Bounties

    def insert_bounty(self, **values: Any) -> bool:
        """
        Insert a bounty unless one already exists for its key.

        Returns:
            bool: True if a row was inserted
        """
        statement = self._insert(Bounty.__table__).values(**values).on_conflict_do_nothing(
            index_elements=['id', 'chain_id']
        )
        result = self._execute(statement, f"inserting bounty {values.get('id')}")
        return result.rowcount == 1

    def get_bounty(self, chain_id: int, bounty_id: int) -> Optional[Bounty]:
        return self.session.query(Bounty).filter_by(chain_id=chain_id, id=bounty_id).first()

    def bounty_has_accepted_claim(self, chain_id: int, bounty_id: int) -> bool:
        return self.session.query(Claim.id).filter_by(
            chain_id=chain_id, bounty_id=bounty_id, is_accepted=True
        ).first() is not None

    # Participations

    def add_participation_stake(self, chain_id: int, bounty_id: int, address: str, amount: int) -> int:
        """
        Add to an address's stake in a bounty, creating the row if needed.

        Returns:
            int: The stake after the addition
        """
        participation = self.get_participation(chain_id, bounty_id, address)
        if participation:
            stake = int(participation.amount) + amount
            participation.amount = str(stake)
        else:
            stake = amount
            self.session.add(ParticipationBounty(
                chain_id=chain_id,
                bounty_id=bounty_id,
                user_address=address,
                amount=str(stake)
            ))
        return stake

    def get_participation(self, chain_id: int, bounty_id: int, address: str) -> Optional[ParticipationBounty]:
        return self.session.query(ParticipationBounty).filter_by(
            chain_id=chain_id, bounty_id=bounty_id, user_address=address
        ).first()

    def remove_participation(self, chain_id: int, bounty_id: int, address: str) -> Optional[int]:
        """
        Delete an address's participation row.

        Returns:
            Optional[int]: The removed stake, or None if there was no row
        """
        participation = self.get_participation(chain_id, bounty_id, address)
        if participation is None:
            return None
        stake = int(participation.amount)
        self.session.delete(participation)
        return stake

    def participations(self, chain_id: int, bounty_id: int) -> List[ParticipationBounty]:
        return self.session.query(ParticipationBounty).filter_by(
            chain_id=chain_id, bounty_id=bounty_id
        ).order_by(ParticipationBounty.user_address).all()

    # Claims

    def upsert_claim(self, values: Dict[str, Any], update_fields: Iterable[str]) -> None:
        """
        Insert a claim or overwrite only `update_fields` on an existing one.

        Fields not listed keep their stored values, which is how ownership
        and acceptance survive a late claim-created event.
        """
        statement = self._insert(Claim.__table__).values(**values)
        statement = statement.on_conflict_do_update(
            index_elements=['id', 'chain_id'],
            set_={field: statement.excluded[field] for field in update_fields}
        )
        self._execute(statement, f"upserting claim {values.get('id')}")

    def get_claim(self, chain_id: int, claim_id: int) -> Optional[Claim]:
        return self.session.query(Claim).filter_by(
            chain_id=chain_id, id=claim_id
        ).populate_existing().first()

    def mark_claim_accepted(self, chain_id: int, claim_id: int) -> bool:
        statement = update(Claim.__table__).where(
            Claim.__table__.c.chain_id == chain_id,
            Claim.__table__.c.id == claim_id
        ).values(is_accepted=True)
        result = self._execute(statement, f"accepting claim {claim_id}")
        return result.rowcount == 1

    def count_claims_owned(self, chain_id: int, owner: str) -> int:
        self.session.flush()
        statement = select(func.count()).select_from(Claim).where(
            Claim.chain_id == chain_id, Claim.owner == owner
        )
        return self.session.execute(statement).scalar() or 0

    # Voting rounds

    def latest_voting_round(self, chain_id: int, bounty_id: int) -> Optional[VotingRound]:
        """The round with the highest number for a bounty, regardless of arrival order"""
        return self.session.query(VotingRound).filter_by(
            chain_id=chain_id, bounty_id=bounty_id
        ).order_by(VotingRound.round.desc()).populate_existing().first()

    def open_voting_round(self, chain_id: int, bounty_id: int, claim_id: int,
                          deadline: Optional[int]) -> VotingRound:
        latest = self.latest_voting_round(chain_id, bounty_id)
        voting_round = VotingRound(
            chain_id=chain_id,
            bounty_id=bounty_id,
            round=(latest.round + 1) if latest else 1,
            claim_id=claim_id,
            yes=0,
            no=0,
            deadline=deadline
        )
        self.session.add(voting_round)
        return voting_round

    def increment_vote(self, chain_id: int, bounty_id: int, round_number: int, support: bool) -> None:
        """Add one vote to exactly one tally of a round, in the database"""
        table = VotingRound.__table__
        column = table.c[VOTE_COLUMNS[bool(support)]]
        statement = update(table).where(
            table.c.chain_id == chain_id,
            table.c.bounty_id == bounty_id,
            table.c.round == round_number
        ).values({column: column + 1})
        self._execute(statement, f"counting vote on bounty {bounty_id} round {round_number}")

    def voting_rounds(self, chain_id: int, bounty_id: int) -> List[VotingRound]:
        return self.session.query(VotingRound).filter_by(
            chain_id=chain_id, bounty_id=bounty_id
        ).order_by(VotingRound.round).populate_existing().all()

    # Leaderboard

    def increment_leaderboard(self, chain_id: int, address: str, **deltas: float) -> None:
        """
        Add to an address's leaderboard totals in one upsert.

        The addition happens in SQL (``earned = leaderboard.earned + :delta``)
        so concurrent settlements of the same row cannot lose updates.
        """
        unknown = set(deltas) - set(LEADERBOARD_TOTALS)
        if unknown:
            raise ValueError(f"Not accumulated leaderboard fields: {sorted(unknown)}")
        if not deltas:
            return

        table = LeaderboardEntry.__table__
        values = {'chain_id': chain_id, 'address': address, 'earned': 0.0, 'paid': 0.0, 'nfts': 0}
        values.update(deltas)
        statement = self._insert(table).values(**values)
        statement = statement.on_conflict_do_update(
            index_elements=['chain_id', 'address'],
            set_={field: table.c[field] + statement.excluded[field] for field in deltas}
        )
        self._execute(statement, f"incrementing leaderboard for {address}")

    def set_leaderboard_nfts(self, chain_id: int, address: str, nfts: int) -> None:
        statement = self._insert(LeaderboardEntry.__table__).values(
            chain_id=chain_id, address=address, earned=0.0, paid=0.0, nfts=nfts
        )
        statement = statement.on_conflict_do_update(
            index_elements=['chain_id', 'address'],
            set_={'nfts': statement.excluded.nfts}
        )
        self._execute(statement, f"setting nft count for {address}")

    def get_leaderboard_entry(self, chain_id: int, address: str) -> Optional[LeaderboardEntry]:
        return self.session.query(LeaderboardEntry).filter_by(
            chain_id=chain_id, address=address
        ).populate_existing().first()

    # Prices

    def latest_price_snapshot(self) -> Optional[PriceSnapshot]:
        return self.session.query(PriceSnapshot).order_by(PriceSnapshot.id.desc()).first()
