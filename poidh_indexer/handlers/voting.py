"""Voting round transitions"""
import logging

from poidh_indexer.errors import ConflictingAggregateWrite, MissingVotingRound
from poidh_indexer.handlers.base import NO_ACTOR, Activity, HandlerContext, handles
from poidh_indexer.models.events import (
    ClaimSubmittedForVote,
    EventName,
    ResetVotingPeriod,
    VoteClaim,
    VotingResolved,
)

logger = logging.getLogger(__name__)

@handles(EventName.CLAIM_SUBMITTED_FOR_VOTE, ClaimSubmittedForVote)
def claim_submitted_for_vote(ctx: HandlerContext, payload: ClaimSubmittedForVote) -> Activity:
    bounty = ctx.require_bounty(ctx.resolve(payload.bounty_id))
    claim_id = ctx.resolve(payload.claim_id)

    bounty.is_voting = True
    if payload.deadline is not None:
        bounty.deadline = payload.deadline

    voting_round = ctx.storage.open_voting_round(ctx.chain_id, bounty.id, claim_id, payload.deadline)
    logger.info(f"Opened voting round {voting_round.round} for bounty {bounty.id} on chain {ctx.chain_id}")

    return Activity(
        action=f"{claim_id} submitted for vote",
        address=NO_ACTOR,
        bounty_id=bounty.id,
        claim_id=claim_id,
    )

@handles(EventName.VOTE_CLAIM, VoteClaim)
def vote_claim(ctx: HandlerContext, payload: VoteClaim) -> Activity:
    bounty = ctx.require_bounty(ctx.resolve(payload.bounty_id))

    # Rounds closed by VotingResolved or ResetVotingPeriod take no more votes
    voting_round = ctx.storage.latest_voting_round(ctx.chain_id, bounty.id)
    if voting_round is None or not bounty.is_voting:
        raise MissingVotingRound(ctx.chain_id, bounty.id)

    if payload.claim_id is not None and ctx.resolve(payload.claim_id) != voting_round.claim_id:
        logger.warning(
            f"Vote by {payload.voter} names claim {payload.claim_id}, counted on round "
            f"{voting_round.round} for claim {voting_round.claim_id}"
        )

    ctx.storage.increment_vote(ctx.chain_id, bounty.id, voting_round.round, payload.support)
    if payload.deadline is not None:
        bounty.deadline = payload.deadline

    return Activity(action='voted', address=payload.voter, bounty_id=bounty.id, claim_id=voting_round.claim_id)

@handles(EventName.VOTING_RESOLVED, VotingResolved)
def voting_resolved(ctx: HandlerContext, payload: VotingResolved) -> Activity:
    bounty = ctx.require_bounty(ctx.resolve(payload.bounty_id))
    bounty.is_voting = False

    in_progress = not payload.passed
    if in_progress and (bounty.is_canceled or ctx.storage.bounty_has_accepted_claim(ctx.chain_id, bounty.id)):
        ctx.conflict(ConflictingAggregateWrite(
            'Bounty', (ctx.chain_id, bounty.id), 'in_progress',
            'failed vote cannot reopen a closed bounty'
        ))
    else:
        bounty.in_progress = in_progress

    return Activity(
        action='voting resolved' if payload.passed else 'voting failed',
        address=NO_ACTOR,
        bounty_id=bounty.id,
    )

@handles(EventName.RESET_VOTING_PERIOD, ResetVotingPeriod)
def reset_voting_period(ctx: HandlerContext, payload: ResetVotingPeriod) -> Activity:
    bounty = ctx.require_bounty(ctx.resolve(payload.bounty_id))
    bounty.is_voting = False
    bounty.in_progress = False
    if payload.deadline is not None:
        bounty.deadline = payload.deadline
    return Activity(action='voting reset period', address=NO_ACTOR, bounty_id=bounty.id)
