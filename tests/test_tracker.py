import pytest

from ethobserver.application.tracker import ConfirmationTracker
from ethobserver.domain.errors import TransactionNotMined
from ethobserver.domain.models import TransactionRef

from conftest import ALICE, BOB, make_tx, tx_hash


def _recorder(tracker):
    events = []
    tracker.subscribe("pending", lambda p: events.append(("pending", p.key)))
    tracker.subscribe("confirmation", lambda p, n: events.append(("confirmation", p.key, n)))
    tracker.subscribe("success", lambda p: events.append(("success", p.key)))
    return events


@pytest.mark.asyncio
async def test_add_is_idempotent():
    tracker = ConfirmationTracker(None, 12)
    events = _recorder(tracker)
    ref = TransactionRef(tx_hash(1), block_number=100)
    assert await tracker.add(ref.key, ref) is True
    assert await tracker.add(ref.key, ref) is False
    assert events == [("pending", ref.key)]
    assert len(tracker) == 1


@pytest.mark.asyncio
async def test_confirmations_are_monotonic():
    tracker = ConfirmationTracker(None, 12)
    ref = TransactionRef(tx_hash(1), block_number=100)
    await tracker.add(ref.key, ref)
    assert tracker.confirmations(ref.key) == 0
    for k in range(5):
        tracker.process(100 + k)
        assert tracker.confirmations(ref.key) == k + 1
    tracker.process(101)
    assert tracker.confirmations(ref.key) == 5
    assert tracker.head == 104


@pytest.mark.asyncio
async def test_success_fires_once_at_threshold():
    tracker = ConfirmationTracker(None, 12)
    events = _recorder(tracker)
    ref = TransactionRef(tx_hash(1), block_number=100)
    await tracker.add(ref.key, ref)
    for b in range(100, 111):
        tracker.process(b)
    assert ("success", ref.key) not in events
    tracker.process(111)
    assert events[-2:] == [("confirmation", ref.key, 12), ("success", ref.key)]
    tracker.process(111)
    tracker.process(120)
    assert events.count(("success", ref.key)) == 1
    assert ref.key not in tracker


@pytest.mark.asyncio
async def test_success_on_second_process_call():
    tracker = ConfirmationTracker(None, 12)
    seen = []
    tracker.subscribe("success", seen.append)
    ref = TransactionRef(tx_hash(7), block_number=500)
    await tracker.add(ref.key, ref)
    tracker.process(500)
    assert seen == []
    tracker.process(511)
    assert seen == [ref]


@pytest.mark.asyncio
async def test_repeated_block_does_not_reemit():
    tracker = ConfirmationTracker(None, 12)
    events = _recorder(tracker)
    ref = TransactionRef(tx_hash(1), block_number=100)
    await tracker.add(ref.key, ref)
    tracker.process(102)
    tracker.process(102)
    tracker.process(100)
    assert events == [("pending", ref.key), ("confirmation", ref.key, 3)]


@pytest.mark.asyncio
async def test_item_above_head_stays_pending():
    tracker = ConfirmationTracker(None, 3)
    events = _recorder(tracker)
    ref = TransactionRef(tx_hash(1), block_number=105)
    await tracker.add(ref.key, ref)
    tracker.process(104)
    assert tracker.entries()[0].stage == "pending"
    tracker.process(105)
    assert tracker.entries()[0].stage == "confirming"
    assert events[-1] == ("confirmation", ref.key, 1)


@pytest.mark.asyncio
async def test_finalized_key_is_not_tracked_again():
    tracker = ConfirmationTracker(None, 1)
    events = _recorder(tracker)
    ref = TransactionRef(tx_hash(1), block_number=100)
    await tracker.add(ref.key, ref)
    tracker.process(100)
    assert await tracker.add(ref.key, ref) is False
    assert events.count(("pending", ref.key)) == 1


@pytest.mark.asyncio
async def test_failing_handler_is_isolated():
    tracker = ConfirmationTracker(None, 2)
    calls = []

    def boom(_):
        raise RuntimeError("handler bug")

    tracker.subscribe("pending", boom)
    tracker.subscribe("pending", calls.append)
    ref = TransactionRef(tx_hash(1), block_number=1)
    await tracker.add(ref.key, ref)
    assert calls == [ref]


@pytest.mark.asyncio
async def test_inclusion_block_resolved_from_chain(chain):
    chain.add_block(42, [make_tx(9, ALICE, BOB, 42)])
    tracker = ConfirmationTracker(chain, 12)
    seen = []
    tracker.subscribe("pending", seen.append)
    assert await tracker.add(tx_hash(9)) is True
    assert tracker.entries()[0].block_number == 42
    assert seen == [tx_hash(9)]


@pytest.mark.asyncio
async def test_unmined_transaction_raises(chain):
    chain.txs[tx_hash(3)] = make_tx(3, ALICE, BOB, None)
    tracker = ConfirmationTracker(chain, 12)
    with pytest.raises(TransactionNotMined):
        await tracker.add(tx_hash(3))
    assert len(tracker) == 0


def test_unknown_event_rejected():
    tracker = ConfirmationTracker(None, 12)
    with pytest.raises(ValueError):
        tracker.subscribe("finalized", print)
