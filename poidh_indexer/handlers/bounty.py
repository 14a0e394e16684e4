"""Bounty lifecycle transitions"""
import logging

from poidh_indexer.errors import ConflictingAggregateWrite
from poidh_indexer.handlers.base import Activity, HandlerContext, handles
from poidh_indexer.models.db import Bounty
from poidh_indexer.models.events import (
    BountyCancelled,
    BountyCreated,
    BountyJoined,
    EventName,
    WithdrawFromOpenBounty,
)

logger = logging.getLogger(__name__)

def _reported_balance(ctx: HandlerContext, balance):
    """Pool balance from the event, if this generation reports one"""
    if ctx.profile.authoritative_balance and balance is not None:
        return balance
    return None

def _set_amount(ctx: HandlerContext, bounty: Bounty, amount: int) -> None:
    bounty.amount = str(amount)
    bounty.amount_sort = ctx.prices.amount_sort(ctx.chain_id, amount)

@handles(EventName.BOUNTY_CREATED, BountyCreated)
def bounty_created(ctx: HandlerContext, payload: BountyCreated) -> Activity:
    bounty_id = ctx.resolve(payload.id)
    ctx.storage.insert_user(payload.issuer)

    inserted = ctx.storage.insert_bounty(
        id=bounty_id,
        chain_id=ctx.chain_id,
        on_chain_id=payload.id,
        title=payload.name,
        description=payload.description,
        amount=str(payload.amount),
        amount_sort=ctx.prices.amount_sort(ctx.chain_id, payload.amount),
        issuer=payload.issuer,
        is_multiplayer=payload.is_multiplayer,
        is_joined_bounty=False,
        is_canceled=False,
        is_voting=False,
        in_progress=True,
        created_at=ctx.timestamp,
    )
    if inserted:
        ctx.storage.add_participation_stake(ctx.chain_id, bounty_id, payload.issuer, payload.amount)
    else:
        ctx.conflict(ConflictingAggregateWrite(
            'Bounty', (ctx.chain_id, bounty_id), 'id', 'bounty already created'
        ))

    return Activity(action='bounty created', address=payload.issuer, bounty_id=bounty_id)

@handles(EventName.BOUNTY_CANCELLED, BountyCancelled)
def bounty_cancelled(ctx: HandlerContext, payload: BountyCancelled) -> Activity:
    bounty = ctx.require_bounty(ctx.resolve(payload.bounty_id))
    bounty.is_canceled = True
    bounty.in_progress = False
    return Activity(action='bounty canceled', address=payload.issuer, bounty_id=bounty.id)

@handles(EventName.BOUNTY_JOINED, BountyJoined)
def bounty_joined(ctx: HandlerContext, payload: BountyJoined) -> Activity:
    bounty = ctx.require_bounty(ctx.resolve(payload.bounty_id))
    ctx.storage.insert_user(payload.participant)

    balance = _reported_balance(ctx, payload.balance)
    if balance is None:
        balance = int(bounty.amount) + payload.amount
    _set_amount(ctx, bounty, balance)
    bounty.is_joined_bounty = True
    if payload.deadline is not None:
        bounty.deadline = payload.deadline

    ctx.storage.add_participation_stake(ctx.chain_id, bounty.id, payload.participant, payload.amount)

    return Activity(
        action=ctx.native_amount(payload.amount, '+'),
        address=payload.participant,
        bounty_id=bounty.id,
    )

@handles(EventName.WITHDRAW_FROM_OPEN_BOUNTY, WithdrawFromOpenBounty)
def withdraw_from_open_bounty(ctx: HandlerContext, payload: WithdrawFromOpenBounty) -> Activity:
    bounty = ctx.require_bounty(ctx.resolve(payload.bounty_id))

    stake = ctx.storage.remove_participation(ctx.chain_id, bounty.id, payload.participant)
    if stake is None:
        logger.warning(f"{payload.participant} withdrew from bounty {bounty.id} without a participation")
    elif stake != payload.amount:
        logger.warning(
            f"Withdrawal of {payload.amount} from bounty {bounty.id} differs from recorded stake {stake}"
        )

    balance = _reported_balance(ctx, payload.balance)
    if balance is None:
        balance = int(bounty.amount) - payload.amount

    if balance < 0:
        ctx.conflict(ConflictingAggregateWrite(
            'Bounty', (ctx.chain_id, bounty.id), 'amount',
            f"withdrawal of {payload.amount} exceeds pool {bounty.amount}"
        ))
    else:
        _set_amount(ctx, bounty, balance)

    return Activity(
        action=ctx.native_amount(payload.amount, '-'),
        address=payload.participant,
        bounty_id=bounty.id,
    )
