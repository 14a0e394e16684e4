"""Claim creation, acceptance and NFT ownership transitions"""
import logging

from poidh_indexer.errors import ConflictingAggregateWrite, MissingAggregate
from poidh_indexer.handlers.base import Activity, HandlerContext, handles
from poidh_indexer.models.events import ClaimAccepted, ClaimCreated, EventName, Transfer

logger = logging.getLogger(__name__)

# Descriptive fields a repeated claim-created event may overwrite
CLAIM_DESCRIPTIVE_FIELDS = ('on_chain_id', 'title', 'description', 'issuer', 'bounty_id')

@handles(EventName.CLAIM_CREATED, ClaimCreated)
def claim_created(ctx: HandlerContext, payload: ClaimCreated) -> Activity:
    claim_id = ctx.resolve(payload.id)
    bounty_id = ctx.resolve(payload.bounty_id)
    ctx.storage.insert_user(payload.issuer)

    existing = ctx.storage.get_claim(ctx.chain_id, claim_id)
    if existing is not None and existing.is_accepted:
        ctx.conflict(ConflictingAggregateWrite(
            'Claim', (ctx.chain_id, claim_id), 'is_accepted',
            'claim re-created after acceptance, acceptance kept'
        ))

    update_fields = list(CLAIM_DESCRIPTIVE_FIELDS)
    url = ''
    if ctx.profile.has_claim_uri and payload.image_uri is not None:
        url = payload.image_uri
        update_fields.append('url')

    # New claims are minted to the bounty contract, which holds them in escrow
    ctx.storage.upsert_claim(
        {
            'id': claim_id,
            'chain_id': ctx.chain_id,
            'on_chain_id': payload.id,
            'title': payload.name,
            'description': payload.description,
            'url': url,
            'issuer': payload.issuer,
            'owner': ctx.event.contract_address,
            'is_accepted': False,
            'bounty_id': bounty_id,
        },
        update_fields,
    )

    return Activity(action='claim created', address=payload.issuer, bounty_id=bounty_id, claim_id=claim_id)

@handles(EventName.CLAIM_ACCEPTED, ClaimAccepted)
def claim_accepted(ctx: HandlerContext, payload: ClaimAccepted) -> Activity:
    bounty = ctx.require_bounty(ctx.resolve(payload.bounty_id))
    claim_id = ctx.resolve(payload.claim_id)

    if not ctx.storage.mark_claim_accepted(ctx.chain_id, claim_id):
        raise MissingAggregate('Claim', (ctx.chain_id, claim_id))

    bounty.in_progress = False
    ctx.leaderboard.settle_accepted_claim(bounty, payload.claim_issuer)

    return Activity(
        action='claim accepted',
        address=payload.claim_issuer,
        bounty_id=bounty.id,
        claim_id=claim_id,
    )

@handles(EventName.TRANSFER, Transfer)
def claim_transferred(ctx: HandlerContext, payload: Transfer) -> Activity:
    claim_id = ctx.resolve(payload.token_id)
    sender, receiver = payload.from_address, payload.to_address

    if not ctx.is_ignored(receiver):
        ctx.storage.insert_user(receiver)

    # The transfer can precede the claim-created event; the placeholder
    # descriptive fields are filled in when that event arrives.
    update_fields = ['owner']
    if payload.token_uri is not None:
        update_fields.append('url')
    ctx.storage.upsert_claim(
        {
            'id': claim_id,
            'chain_id': ctx.chain_id,
            'on_chain_id': payload.token_id,
            'title': '',
            'description': '',
            'url': payload.token_uri or '',
            'issuer': receiver,
            'owner': receiver,
            'is_accepted': False,
            'bounty_id': None,
        },
        update_fields,
    )

    ctx.leaderboard.refresh_nft_counts(ctx.chain_id, [sender, receiver], ctx.ignored_addresses)

    claim = ctx.storage.get_claim(ctx.chain_id, claim_id)
    return Activity(
        action='claim transferred',
        address=receiver,
        bounty_id=claim.bounty_id if claim else None,
        claim_id=claim_id,
    )
