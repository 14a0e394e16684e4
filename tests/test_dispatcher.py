"""Tests for event routing, idempotence and batch dispatch."""
import threading

import pytest
from pydantic import ValidationError

from poidh_indexer.dispatcher import DispatchSummary, EventDispatcher
from poidh_indexer.errors import UnknownChain
from poidh_indexer.models.db import Transaction
from poidh_indexer.units import to_usd

from conftest import (
    ALICE,
    BOB,
    CAROL,
    CHAIN_ID,
    DEGEN_CHAIN_ID,
    ETH_USD,
    LEGACY_ESCROW,
    NFT_CONTRACT,
    OFFSET,
)


def test_generations_share_a_chain_without_collisions(dispatcher, fetch, make_event) -> None:
    dispatcher.dispatch(make_event("BountyCreated", {"id": 5, "amount": 1000, "issuer": ALICE}))
    dispatcher.dispatch(make_event(
        "BountyCreated", {"id": 5, "amount": 2000, "issuer": BOB}, generation="current",
    ))
    dispatcher.dispatch(make_event(
        "ClaimCreated", {"id": 7, "bountyId": 5, "issuer": ALICE}, generation="current",
    ))
    dispatcher.dispatch(make_event(
        "ClaimAccepted", {"bountyId": 5, "claimId": 7, "claimIssuer": ALICE}, generation="current",
    ))

    legacy = fetch(lambda storage: storage.get_bounty(CHAIN_ID, 5))
    current = fetch(lambda storage: storage.get_bounty(CHAIN_ID, OFFSET + 5))
    assert legacy.amount == "1000"
    assert legacy.in_progress is True
    assert current.amount == "2000"
    assert current.in_progress is False
    assert fetch(lambda storage: storage.get_claim(CHAIN_ID, OFFSET + 7)).is_accepted is True

    alice = fetch(lambda storage: storage.get_leaderboard_entry(CHAIN_ID, ALICE))
    bob = fetch(lambda storage: storage.get_leaderboard_entry(CHAIN_ID, BOB))
    assert alice.earned == pytest.approx(to_usd(2000, ETH_USD))
    assert bob.paid == pytest.approx(to_usd(2000, ETH_USD))


def test_transfer_recounts_previous_owner(dispatcher, fetch, make_event) -> None:
    dispatcher.dispatch(make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": ALICE}))
    for claim_id in (8, 9):
        dispatcher.dispatch(make_event("ClaimCreated", {"id": claim_id, "bountyId": 1, "issuer": CAROL}))
        dispatcher.dispatch(make_event(
            "Transfer", {"from": LEGACY_ESCROW, "to": ALICE, "tokenId": claim_id}, contract=NFT_CONTRACT,
        ))
    assert fetch(lambda storage: storage.get_leaderboard_entry(CHAIN_ID, ALICE)).nfts == 2

    dispatcher.dispatch(make_event(
        "Transfer", {"from": ALICE, "to": BOB, "tokenId": 9}, contract=NFT_CONTRACT,
    ))

    assert fetch(lambda storage: storage.get_claim(CHAIN_ID, 9)).owner == BOB
    assert fetch(lambda storage: storage.get_leaderboard_entry(CHAIN_ID, ALICE)).nfts == 1
    assert fetch(lambda storage: storage.get_leaderboard_entry(CHAIN_ID, BOB)).nfts == 1


def test_duplicate_event_is_skipped(dispatcher, fetch, make_event) -> None:
    event = make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": ALICE})
    assert dispatcher.dispatch(event) is True
    assert dispatcher.dispatch(event) is False
    assert len(fetch(lambda storage: storage.transactions(CHAIN_ID))) == 1


def test_same_transaction_different_logs_both_apply(dispatcher, fetch, make_event) -> None:
    tx_hash = "0x" + "ab" * 32
    dispatcher.dispatch(make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": ALICE}, tx_hash=tx_hash))
    dispatcher.dispatch(make_event(
        "BountyJoined", {"bountyId": 1, "participant": BOB, "amount": 5}, tx_hash=tx_hash,
    ))
    entries = fetch(lambda storage: storage.transactions(CHAIN_ID, 1))
    assert [entry.tx for entry in entries] == [tx_hash, tx_hash]
    assert fetch(lambda storage: storage.get_bounty(CHAIN_ID, 1)).amount == "15"


def test_dispatch_accepts_plain_dicts(dispatcher, fetch) -> None:
    applied = dispatcher.dispatch({
        "chain_id": CHAIN_ID,
        "generation": "legacy",
        "name": "BountyCreated",
        "block_number": 10,
        "block_timestamp": 1_700_000_000,
        "transaction_hash": "0x01",
        "transaction_index": 2,
        "log_index": 3,
        "contract_address": LEGACY_ESCROW,
        "args": {"id": 1, "name": "logo", "amount": "25", "issuer": ALICE},
    })
    assert applied is True

    [entry] = fetch(lambda storage: storage.transactions(CHAIN_ID))
    assert (entry.block_number, entry.transaction_index, entry.log_index) == (10, 2, 3)
    assert entry.timestamp == 1_700_000_000
    assert fetch(lambda storage: storage.get_bounty(CHAIN_ID, 1)).amount == "25"


def test_unknown_chain_is_rejected(dispatcher, fetch, make_event) -> None:
    with pytest.raises(UnknownChain):
        dispatcher.dispatch(make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": ALICE}, chain_id=10))
    assert fetch(lambda storage: storage.session.query(Transaction).count()) == 0


def test_invalid_payload_is_rejected(dispatcher, make_event) -> None:
    with pytest.raises(ValidationError):
        dispatcher.dispatch(make_event("BountyCreated", {"id": 1, "issuer": ALICE}))
    with pytest.raises(ValidationError):
        dispatcher.dispatch(make_event("BountyCreated", {"id": 1, "amount": -1, "issuer": ALICE}))


def test_unknown_event_name_is_rejected(dispatcher, make_event) -> None:
    with pytest.raises(ValidationError):
        dispatcher.dispatch(make_event("OwnershipTransferred", {}))


def test_sentinels_are_shared_and_per_chain(database, chains, prices) -> None:
    dispatcher = EventDispatcher(database, chains, ignore_addresses=["0xDEAD"])
    assert "0xdead" in dispatcher._ignored[CHAIN_ID]
    assert LEGACY_ESCROW.lower() in dispatcher._ignored[DEGEN_CHAIN_ID]


def test_dispatch_all_summarizes_per_chain(dispatcher, fetch, make_event) -> None:
    created = make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": ALICE})
    events = [
        created,
        make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": ALICE}, chain_id=DEGEN_CHAIN_ID),
        make_event("BountyJoined", {"bountyId": 1, "participant": BOB, "amount": 5}),
        created,
    ]

    summary = dispatcher.dispatch_all(events)

    assert summary.processed == 3
    assert summary.skipped == 1
    assert summary.per_chain == {
        CHAIN_ID: {"processed": 2, "skipped": 1},
        DEGEN_CHAIN_ID: {"processed": 1, "skipped": 0},
    }
    assert fetch(lambda storage: storage.get_bounty(CHAIN_ID, 1)).amount == "15"


def test_dispatch_all_keeps_chain_order_across_workers(dispatcher, make_event, monkeypatch) -> None:
    seen = {CHAIN_ID: [], DEGEN_CHAIN_ID: []}
    threads = set()

    def fake_dispatch(event):
        threads.add(threading.get_ident())
        seen[event.chain_id].append(event.log_index)
        return True

    monkeypatch.setattr(dispatcher, "dispatch", fake_dispatch)
    events = [
        make_event("BountyCancelled", {"bountyId": n, "issuer": ALICE}, chain_id=chain_id)
        for n in range(6)
        for chain_id in (CHAIN_ID, DEGEN_CHAIN_ID)
    ]

    summary = dispatcher.dispatch_all(events, max_workers=2)

    assert summary.processed == 12
    assert seen[CHAIN_ID] == sorted(seen[CHAIN_ID])
    assert seen[DEGEN_CHAIN_ID] == sorted(seen[DEGEN_CHAIN_ID])
    assert len(seen[CHAIN_ID]) == len(seen[DEGEN_CHAIN_ID]) == 6
    assert threading.get_ident() not in threads


def test_dispatch_all_raises_first_chain_failure(dispatcher, make_event, monkeypatch) -> None:
    applied = []

    def fake_dispatch(event):
        if event.chain_id == DEGEN_CHAIN_ID and event.args["bountyId"] == 1:
            raise RuntimeError("boom")
        applied.append((event.chain_id, event.args["bountyId"]))
        return True

    monkeypatch.setattr(dispatcher, "dispatch", fake_dispatch)
    events = [
        make_event("BountyCancelled", {"bountyId": n, "issuer": ALICE}, chain_id=chain_id)
        for n in range(3)
        for chain_id in (CHAIN_ID, DEGEN_CHAIN_ID)
    ]

    with pytest.raises(RuntimeError, match="boom"):
        dispatcher.dispatch_all(events, max_workers=4)

    assert sorted(a for a in applied if a[0] == CHAIN_ID) == [(CHAIN_ID, 0), (CHAIN_ID, 1), (CHAIN_ID, 2)]
    assert [a for a in applied if a[0] == DEGEN_CHAIN_ID] == [(DEGEN_CHAIN_ID, 0)]


def test_summary_merge() -> None:
    first, second = DispatchSummary(), DispatchSummary()
    first.record(CHAIN_ID, True)
    second.record(CHAIN_ID, False)
    second.record(DEGEN_CHAIN_ID, True)

    first.merge(second)

    assert (first.processed, first.skipped) == (2, 1)
    assert first.per_chain[CHAIN_ID] == {"processed": 1, "skipped": 1}
    assert first.per_chain[DEGEN_CHAIN_ID] == {"processed": 1, "skipped": 0}


def test_malformed_address_is_rejected(dispatcher, fetch, make_event) -> None:
    with pytest.raises(ValidationError):
        dispatcher.dispatch(make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": "0x1234"}))
    with pytest.raises(ValidationError):
        make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": ALICE}, contract="escrow")
    assert fetch(lambda storage: storage.transactions(CHAIN_ID)) == []


def test_envelope_contract_is_checksummed(make_event) -> None:
    event = make_event("BountyCreated", {"id": 1, "amount": 10, "issuer": ALICE}, contract=LEGACY_ESCROW.lower())
    assert event.contract_address == LEGACY_ESCROW
