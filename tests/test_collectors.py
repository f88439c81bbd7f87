import pytest

from ethobserver.application.collectors import TransferFeed, TxFeed
from ethobserver.application.watch_list import WatchList
from ethobserver.domain.decoding import TRANSFER_T0, decode_transfer
from ethobserver.domain.models import EventLog

from conftest import ALICE, BOB, CAROL, TOKEN, make_transfer_log, make_tx, tx_hash


def test_tx_feed_matches_sender_or_recipient():
    feed = TxFeed(WatchList([ALICE]))
    seen = []
    feed.on_new_transaction(seen.append)
    txs = [
        make_tx(1, ALICE, BOB, 10),
        make_tx(2, BOB, ALICE, 10),
        make_tx(3, BOB, CAROL, 10),
        make_tx(4, BOB, None, 10),      # contract creation
    ]
    found = feed.add(txs)
    assert [r.hash for r in found] == [tx_hash(1), tx_hash(2)]
    assert seen == found
    assert found[0].block_number == 10


def test_tx_feed_follows_watch_list_changes():
    wl = WatchList()
    feed = TxFeed(wl)
    assert feed.add([make_tx(1, ALICE, BOB, 1)]) == []
    wl.add(BOB.upper().replace("0X", "0x"))
    assert len(feed.add([make_tx(1, ALICE, BOB, 1)])) == 1


@pytest.mark.asyncio
async def test_transfer_feed_dedups_rescans(chain):
    chain.add_block(5, logs=[
        make_transfer_log(ALICE, BOB, 1, tx=1, log_index=0, block=5),
        make_transfer_log(CAROL, ALICE, 2, tx=1, log_index=1, block=5),
        make_transfer_log(BOB, CAROL, 3, tx=2, log_index=0, block=5),
    ])
    feed = TransferFeed(chain, WatchList([ALICE]), cache_size=16)
    seen = []
    feed.on_new_transfer(seen.append)

    first = await feed.scan(5)
    assert [r.key for r in first] == [(tx_hash(1), 0), (tx_hash(1), 1)]
    assert await feed.scan(5) == []
    assert seen == first


@pytest.mark.asyncio
async def test_self_transfer_emitted_once(chain):
    chain.add_block(5, logs=[make_transfer_log(ALICE, ALICE, 9, tx=1, log_index=4, block=5)])
    feed = TransferFeed(chain, WatchList([ALICE]))
    assert len(await feed.scan(5)) == 1


@pytest.mark.asyncio
async def test_transfer_cache_is_bounded(chain):
    chain.add_block(5, logs=[make_transfer_log(ALICE, BOB, 1, tx=n, log_index=0, block=5) for n in range(3)])
    feed = TransferFeed(chain, WatchList([ALICE]), cache_size=2)
    assert len(await feed.scan(5)) == 3
    assert list(feed._cache) == [(tx_hash(1), 0), (tx_hash(2), 0)]


@pytest.mark.asyncio
async def test_empty_watch_list_skips_rpc(chain):
    feed = TransferFeed(chain, WatchList())
    assert await feed.scan(5) == []
    assert chain.calls == {}


def test_decode_transfer_ignores_erc721_and_other_events():
    base = make_transfer_log(ALICE, BOB, 10**30, tx=1, log_index=0, block=1)
    rec = decode_transfer(base)
    assert rec is not None and rec.amount == 10**30 and rec.token == TOKEN
    nft = EventLog(base.address, base.topics + ("0x" + "0" * 63 + "1",), "0x", 1, base.tx_hash, 0)
    assert decode_transfer(nft) is None
    other = EventLog(base.address, ("0x" + "1" * 64,) + base.topics[1:], base.data_hex, 1, base.tx_hash, 0)
    assert decode_transfer(other) is None
    assert base.topics[0] == TRANSFER_T0
