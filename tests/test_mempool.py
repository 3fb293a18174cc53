import threading

import pytest

from lecoin.keys import KeyManager
from lecoin.mempool import MEMPOOL_DEFAULT_CAPACITY, Mempool
from lecoin.tx import TxError, new_two_way_tx


@pytest.fixture
def keys():
    return KeyManager(), KeyManager()


def _signed(key, other, amount=0):
    tx = new_two_way_tx(key.wallet, other.wallet, amount)
    key.sign_transaction(tx)
    return tx


def test_insert_and_pop(keys):
    pool = Mempool()
    tx = _signed(*keys)
    pool.insert_tx(tx)
    assert len(pool) == 1
    assert pool.pop_txs(1, timeout=1) == [tx]
    assert len(pool) == 0


def test_insert_unsigned_raises(keys):
    pool = Mempool()
    tx = new_two_way_tx(keys[0].wallet, keys[1].wallet, 1)
    with pytest.raises(TxError):
        pool.insert_tx(tx)
    assert len(pool) == 0


def test_duplicate_insert_keeps_one(keys):
    pool = Mempool()
    tx = _signed(*keys)
    pool.insert_tx(tx)
    pool.insert_tx(tx)
    assert len(pool) == 1


def test_insert_txs_skips_invalid(keys):
    pool = Mempool()
    good = _signed(*keys)
    bad = new_two_way_tx(keys[1].wallet, keys[0].wallet, 1)
    pool.insert_txs([good, bad])
    assert pool.pop_txs(1, timeout=1) == [good]
    assert len(pool) == 0


def test_pop_times_out_when_short(keys):
    pool = Mempool()
    pool.insert_tx(_signed(*keys))
    with pytest.raises(TimeoutError):
        pool.pop_txs(2, timeout=0.05)
    assert len(pool) == 1


def test_pop_zero_returns_nothing(keys):
    pool = Mempool()
    pool.insert_tx(_signed(*keys))
    assert pool.pop_txs(0) == []
    assert len(pool) == 1


def test_pop_negative_raises():
    with pytest.raises(ValueError):
        Mempool().pop_txs(-1)


def test_pop_waits_for_insert(keys):
    pool = Mempool()
    result = []
    worker = threading.Thread(target=lambda: result.extend(pool.pop_txs(2, timeout=5)))
    worker.start()
    first, second = _signed(*keys), _signed(keys[1], keys[0])
    pool.insert_tx(first)
    pool.insert_txs([second])
    worker.join(timeout=5)
    assert not worker.is_alive()
    assert {tx.txid for tx in result} == {first.txid, second.txid}


def test_default_capacity():
    assert Mempool().capacity == MEMPOOL_DEFAULT_CAPACITY