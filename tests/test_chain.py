import itertools
import queue

import pytest

from lecoin.block import (
    GENESIS_HASH,
    START_REWARD,
    START_TARGET,
    BlockError,
    new_block,
)
from lecoin.chain import ChainError, LeChain
from lecoin.keys import KeyManager
from lecoin.tx import new_two_way_tx


def _mine(block):
    block.nonce = next(n for n in itertools.count() if block.try_nonce(n))
    return block


def _signed_mined(keys, block):
    keys.sign_transaction(block.miner_tx)
    return _mine(block)


@pytest.fixture
def k1():
    return KeyManager()


@pytest.fixture
def k2():
    return KeyManager()


def test_new_chain_has_only_genesis(k1):
    chain = LeChain()
    assert chain.length == 1
    assert chain.balances() == {}
    assert chain.balance(k1.wallet) == 0
    assert chain.head.block_hash == GENESIS_HASH


def test_push_block_extends_chain_and_pays_miner(k1):
    chain = LeChain()
    sink = queue.Queue()
    block = _signed_mined(k1, chain.new_chain_block(k1.wallet))
    head = chain.push_block(block, sink)
    assert head.length == 2
    assert chain.length == 2
    assert chain.balance(k1.wallet) == START_REWARD
    assert sink.get_nowait() is block
    assert k1.wallet.pretty_string() in chain.balance_string()


def test_listener_signalled_when_head_changes(k1):
    chain = LeChain()
    signal = chain.register_listener()
    chain.push_block(_signed_mined(k1, chain.new_chain_block(k1.wallet)))
    assert signal.get_nowait() is True


def test_bad_nonce_rejected(k1):
    chain = LeChain()
    block = chain.new_chain_block(k1.wallet)
    k1.sign_transaction(block.miner_tx)
    block.nonce = next(n for n in itertools.count() if not block.try_nonce(n))
    with pytest.raises(BlockError):
        chain.push_block(block)
    assert chain.length == 1


def test_unknown_parent_rejected(k1):
    chain = LeChain()
    block = new_block(b"\x01" * 32, k1.wallet, START_REWARD, START_TARGET)
    _signed_mined(k1, block)
    with pytest.raises(ChainError):
        chain.push_block(block)
    assert chain.length == 1


def test_wrong_target_rejected(k1):
    chain = LeChain()
    block = new_block(GENESIS_HASH, k1.wallet, START_REWARD, 1)
    _signed_mined(k1, block)
    with pytest.raises(ChainError, match="target"):
        chain.push_block(block)
    assert chain.length == 1


def test_verify_new_block_accepts_signed_block(k1):
    chain = LeChain()
    block = chain.new_chain_block(k1.wallet)
    k1.sign_transaction(block.miner_tx)
    assert chain.verify_new_block(block) is None


def test_verify_new_block_rejects_unsigned_miner_tx(k1):
    chain = LeChain()
    block = chain.new_chain_block(k1.wallet)
    with pytest.raises(ChainError):
        chain.verify_new_block(block)


def test_verify_new_block_reports_overspending_tx(k1, k2):
    chain = LeChain()
    block = chain.new_chain_block(k1.wallet)
    spend = new_two_way_tx(k1.wallet, k2.wallet, 100)
    k1.sign_transaction(spend)
    block.insert_transactions([spend])
    k1.sign_transaction(block.miner_tx)
    with pytest.raises(ChainError) as info:
        chain.verify_new_block(block)
    assert spend in info.value.invalid_txs


def test_fork_longest_branch_wins(k1, k2):
    chain = LeChain()
    b1 = _signed_mined(k1, chain.new_chain_block(k1.wallet))
    b2 = _signed_mined(k2, chain.new_chain_block(k2.wallet))
    chain.push_block(b1)
    signal = chain.register_listener()
    chain.push_block(b2)
    assert chain.length == 2
    assert chain.head.block_hash == b1.block_hash
    assert signal.empty()
    assert chain.balance(k2.wallet) == 0

    b3 = new_block(b2.block_hash, k2.wallet, START_REWARD, START_TARGET)
    head = chain.push_block(_signed_mined(k2, b3))
    assert head.length == 3
    assert chain.head.block_hash == b3.block_hash
    assert chain.balance(k2.wallet) == 2 * START_REWARD
    assert chain.balance(k1.wallet) == 0
    assert signal.get_nowait() is True


def test_verify_chain_marks_head_valid(k1):
    chain = LeChain()
    head = chain.push_block(_signed_mined(k1, chain.new_chain_block(k1.wallet)))
    assert head.valid is False
    chain.verify_chain(head)
    assert head.valid is True