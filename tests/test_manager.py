import socket
import threading

import pytest

from lecoin.manager import (
    KEY_PATH,
    LeCoinManager,
    handle_balance,
    handle_list,
    handle_self_send,
    handle_send,
    handle_users,
)
from lecoin.miner import LeMiner
from lecoin.protocol import MessageType, read_packet
from lecoin.repl import LCM_REPL_NUM
from lecoin.tx import unmarshal_two_way_tx
from lecoin.vm import VM, VMConfig
from lecoin.vsocket import VSocket

LPORT = 4100


@pytest.fixture
def machine(tmp_path):
    ours, peer = socket.socketpair()
    peer.settimeout(5)
    vm = VM(VMConfig("node", LPORT), base_dir=tmp_path, vsocket=VSocket(ours, lport=LPORT))
    yield vm, peer
    vm.close()
    peer.close()


def test_key_is_stored_and_reloaded(machine):
    vm, _ = machine
    first = LeCoinManager(vm, False)
    assert vm.exists(KEY_PATH)
    second = LeCoinManager(vm, False)
    assert second.keys.wallet == first.keys.wallet
    assert first.miner is None


def test_miner_node_can_start_and_stop_miner(machine):
    vm, _ = machine
    manager = LeCoinManager(vm, True)
    assert isinstance(manager.miner, LeMiner)
    manager.run_miner()
    assert manager.miner.running
    manager.stop_miner()
    assert not manager.miner.running


def test_non_miner_cannot_stop_miner(machine):
    vm, _ = machine
    with pytest.raises(RuntimeError):
        LeCoinManager(vm, False).stop_miner()


def test_repl_commands(machine):
    vm, _ = machine
    manager = LeCoinManager(vm, False)
    repl = manager.make_repl()
    assert set(repl.commands) == {"balance", "list", "users", "ss", "send"}
    assert repl.config[LCM_REPL_NUM] is manager


def test_handle_balance(machine, capsys):
    vm, _ = machine
    manager = LeCoinManager(vm, False)
    assert handle_balance(manager, []) == 0.0
    out = capsys.readouterr().out
    assert out == (
        f"Wallet: {manager.keys.wallet.pretty_string()}\nMy LeBalance is: 0.00\n"
    )


@pytest.mark.parametrize("handler", [handle_balance, handle_list, handle_users, handle_self_send])
def test_no_arg_handlers_reject_arguments(machine, handler):
    vm, _ = machine
    with pytest.raises(ValueError):
        handler(LeCoinManager(vm, False), ["extra"])


def test_list_and_users_are_empty_on_fresh_chain(machine):
    vm, _ = machine
    manager = LeCoinManager(vm, False)
    assert handle_list(manager, []) == ""
    assert handle_users(manager, []) == ""


@pytest.mark.parametrize(
    "args, error",
    [(["1"], ValueError), (["x", "1"], ValueError), (["0", "y"], ValueError), (["0", "1"], LookupError)],
)
def test_handle_send_errors(machine, args, error):
    vm, _ = machine
    manager = LeCoinManager(vm, False)
    manager.sender.list_users()
    with pytest.raises(error):
        handle_send(manager, args)


def test_handle_self_send_queues_transaction(machine):
    vm, _ = machine
    manager = LeCoinManager(vm, False)
    tx = handle_self_send(manager, [])
    assert manager.sender.upchan.get_nowait() is tx


def test_run_broadcasts_own_transactions(machine):
    vm, peer = machine
    manager = LeCoinManager(vm, False)
    thread = threading.Thread(target=manager.run, daemon=True)
    thread.start()
    try:
        tx = manager.sender.self_send()
        packet = read_packet(peer.makefile("rb"))
    finally:
        manager.close()
        thread.join(2)
    assert packet.msg_type == MessageType.TX
    assert packet.receiver_port == 0
    received = unmarshal_two_way_tx(packet.msg)
    assert received.full_marshal() == tx.full_marshal()
    assert not thread.is_alive()