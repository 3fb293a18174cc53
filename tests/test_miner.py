import queue
import threading

import pytest

from lecoin.block import MAX_TXS, unmarshal_block
from lecoin.chain import LeChain
from lecoin.keys import KeyManager
from lecoin.miner import LeMiner
from lecoin.tx import TxError, new_two_way_tx

_WAIT = 120


def _mine_once(miner, num_tx):
    blocks = queue.Queue()
    abort = threading.Event()
    thread = threading.Thread(
        target=miner.mine, args=(queue.Queue(), abort, blocks, num_tx), daemon=True
    )
    thread.start()
    block = blocks.get(timeout=_WAIT)
    abort.set()
    thread.join(timeout=_WAIT)
    assert not thread.is_alive()
    return block


def _signed_transfer(keys, receiver, amount):
    tx = new_two_way_tx(keys.wallet, receiver, amount)
    keys.sign_transaction(tx)
    return tx


def test_mine_zero_tx():
    k1 = KeyManager()
    chain = LeChain()
    assert chain.length == 1
    miner = LeMiner(chain, k1)
    block = _mine_once(miner, 0)
    assert chain.length == 2
    assert chain.head.block_hash == block.block_hash


def test_mine_one_tx():
    k1, k2 = KeyManager(), KeyManager()
    chain = LeChain()
    assert chain.length == 1
    miner = LeMiner(chain, k1)
    _mine_once(miner, 0)
    assert chain.length == 2

    miner.insert_tx(_signed_transfer(k1, k2.wallet, 2))
    _mine_once(miner, 1)
    assert chain.length == 3
    assert chain.balance(k2.wallet) == 2


def test_mine_two_tx():
    k1, k2 = KeyManager(), KeyManager()
    chain = LeChain()
    assert chain.length == 1
    miner = LeMiner(chain, k1)
    _mine_once(miner, 0)
    assert chain.length == 2

    miner.insert_tx(_signed_transfer(k1, k2.wallet, 2))
    _mine_once(miner, 1)
    assert chain.length == 3

    miner.insert_tx(_signed_transfer(k2, k1.wallet, 1))
    _mine_once(miner, 1)
    assert chain.length == 4
    assert chain.balance(k2.wallet) == 1


def test_marshal_and_unmarshal_mined_block():
    k1, k2 = KeyManager(), KeyManager()
    chain = LeChain()
    miner = LeMiner(chain, k1)
    miner.insert_tx(_signed_transfer(k1, k1.wallet, 0))
    miner.insert_tx(_signed_transfer(k2, k2.wallet, 0))
    block = _mine_once(miner, 2)
    assert len(block.transactions) == 3
    copy = unmarshal_block(block.full_marshal())
    assert copy.full_marshal() == block.full_marshal()


def test_insert_unsigned_tx_rejected():
    k1, k2 = KeyManager(), KeyManager()
    miner = LeMiner(LeChain(), k1)
    with pytest.raises(TxError):
        miner.insert_tx(new_two_way_tx(k1.wallet, k2.wallet, 1))
    assert len(miner.mempool) == 0


def test_run_mines_full_block_and_stops():
    keys = [KeyManager() for _ in range(MAX_TXS)]
    chain = LeChain()
    miner = LeMiner(chain, keys[0])
    for k in keys[1:]:
        miner.insert_tx(_signed_transfer(k, k.wallet, 0))
    miner.run()
    try:
        with pytest.raises(RuntimeError):
            miner.run()
        block = miner.blocks.get(timeout=_WAIT)
    finally:
        miner.stop()
    assert len(block.transactions) == MAX_TXS
    assert chain.length >= 2
    assert miner.running is False