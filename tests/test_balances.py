import pytest

from lecoin.balances import BalanceError, BalanceMap
from lecoin.keys import KeyManager
from lecoin.tx import TxRecord, new_miner_tx, new_two_way_tx


@pytest.fixture
def wallets():
    return KeyManager().wallet, KeyManager().wallet


def test_unknown_wallet_has_zero_balance(wallets):
    assert BalanceMap().balance(wallets[0]) == 0


def test_process_record_insert_and_undo(wallets):
    w, _ = wallets
    bm = BalanceMap()
    bm.process_record(TxRecord(w, 6.0), True)
    assert bm.balance(w) == 6.0
    bm.process_record(TxRecord(w, 6.0), False)
    assert bm.balance(w) == 0


def test_process_record_negative_raises_and_registers_wallet(wallets):
    w, _ = wallets
    bm = BalanceMap()
    with pytest.raises(BalanceError):
        bm.process_record(TxRecord(w, -1.0), True)
    assert bm.balances() == {str(w): 0}


def test_process_transactions_returns_new_map(wallets):
    w, _ = wallets
    tx = new_miner_tx(w, 6)
    bm = BalanceMap()
    new = bm.process_transactions({tx.txid: tx}, True)
    assert new.balance(w) == 6.0
    assert bm.balance(w) == 0
    assert len(bm) == 0


def test_process_transactions_undo_round_trip(wallets):
    w1, w2 = wallets
    reward = new_miner_tx(w1, 6)
    transfer = new_two_way_tx(w1, w2, 2)
    applied = BalanceMap().process_transactions([reward], True)
    applied = applied.process_transactions([transfer], True)
    assert applied.balance(w1) == applied.balance(w2) + 2
    undone = applied.process_transactions([transfer], False)
    assert undone.balance(w1) == applied.balance(w1) + 2
    assert undone.balance(w2) == 0


def test_process_transactions_reports_invalid(wallets):
    w1, w2 = wallets
    reward = new_miner_tx(w2, 6)
    overdraft = new_two_way_tx(w1, w2, 5)
    bm = BalanceMap()
    with pytest.raises(BalanceError) as info:
        bm.process_transactions({reward.txid: reward, overdraft.txid: overdraft}, True)
    assert info.value.invalid_txs == [overdraft]
    assert bm.balances() == {}


def test_balances_is_snapshot(wallets):
    w, _ = wallets
    bm = BalanceMap()
    bm.process_record(TxRecord(w, 3.0), True)
    snapshot = bm.balances()
    snapshot[str(w)] = 100.0
    assert bm.balance(w) == 3.0


def test_copy_is_independent(wallets):
    w, _ = wallets
    bm = BalanceMap()
    bm.process_record(TxRecord(w, 3.0), True)
    other = bm.copy()
    other.process_record(TxRecord(w, 3.0), True)
    assert bm.balance(w) == 3.0
    assert other.balance(w) == 6.0


def test_str_lists_pretty_wallet_and_balance(wallets):
    w, _ = wallets
    bm = BalanceMap()
    bm.process_record(TxRecord(w, 6.0), True)
    assert str(bm) == f"Wallet: {w.pretty_string()} \t Balance: 6.00\n"