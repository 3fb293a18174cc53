# lecoin

`lecoin` is a small proof-of-work cryptocurrency that runs entirely on one
machine. Each participant is a simulated host ("LeOS") with its own sandboxed
file system, an ECDSA P-256 key pair whose public key is its wallet, and a TCP
connection to a virtual switch that relays packets between hosts. Hosts
exchange signed transactions and mined blocks; miners build blocks from a pool
of pending transactions and search for a nonce whose SHA-256 hash starts with
enough zero bits. The longest branch of the chain is the trusted one; on a tie
the branch that arrived first wins.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Running a network

Start the virtual switch first. It listens on `127.0.0.1`, port 23623 unless
a port is given as its only argument:

```
lecoin-vswitch
lecoin-vswitch 24000
```

A packet addressed to port 0 is relayed to every connected host except its
sender; any other packet goes to the host connected from that port.

Then start one client per host, each with its own JSON configuration file:

```
lecoin-client alice.json
```

The file names the host, gives the local port its connection binds to
(0 lets the system choose), and lists arguments. If the first argument is
`miner`, the host mines:

```json
{
  "name": "alice",
  "port": 5001,
  "args": ["miner"]
}
```

The client always connects to the switch on the default port 23623.

Each host keeps its files under `hostdirs/<name>/` in the current working
directory. On first start a private key is generated and stored at
`.ssh/ecdkey` inside that directory; later starts load it, so the host keeps
its wallet.

## The shell

Once booted, a host reads commands from standard input:

| Command                        | What it does                                          |
|--------------------------------|-------------------------------------------------------|
| `help`                         | list all commands                                     |
| `balance`                      | show this host's wallet tag and balance               |
| `list`                         | show every known wallet and its balance               |
| `users`                        | number the known wallets for use with `send`          |
| `send <index> <amount>`        | send coins to the wallet numbered by the last `users` |
| `ss`                           | send zero coins to yourself (handy to feed a miner)   |
| `cd <dir>`, `pwd`, `mkdir <dir>`, `ls [dir]` | work in the host's sandboxed file system |
| `lefact`                       | print a fact about LeBron                             |

Transactions made with `send` or `ss` are broadcast to every host and, on a
mining host, added to its own pool. Transactions from other hosts are only
kept by mining hosts. Blocks from other hosts are checked and added to the
local chain.

A miner builds blocks of three pending transactions plus its own reward of
6 coins, so it waits until three transactions are pending before it starts on
a block. A block holds at most four transactions, reward included, and the
proof of work asks for 15 leading zero bits.

## Using the library

The pieces work without the network. Mining one block that holds only the
reward, and making a transfer:

```python
import queue
import threading

from lecoin.chain import LeChain
from lecoin.keys import KeyManager
from lecoin.miner import LeMiner
from lecoin.tx import new_two_way_tx, unmarshal_two_way_tx

alice = KeyManager()          # a fresh key, not stored anywhere
bob = KeyManager()
chain = LeChain()
miner = LeMiner(chain, alice)

abort = threading.Event()
mined = queue.Queue()
worker = threading.Thread(target=miner.mine, args=(queue.Queue(), abort, mined, 0))
worker.start()
block = mined.get()           # the first block accepted by the chain
abort.set()
worker.join()

print(chain.length)               # 2, genesis included
print(chain.balance(alice.wallet))  # 6.0

tx = new_two_way_tx(alice.wallet, bob.wallet, 2)
alice.sign_transaction(tx)
tx.verify()
data = tx.full_marshal()
assert unmarshal_two_way_tx(data).full_marshal() == data
miner.insert_tx(tx)           # queued for the next block
```

The modules:

- `lecoin.wallet` — `Wallet`, `from_string`, `from_bytes`, `pretty_from_string`
- `lecoin.tx` — `MinerTx`, `TwoWayTx`, `TxRecord`, `TxError`, `new_miner_tx`,
  `new_two_way_tx`, `unmarshal_miner_tx`, `unmarshal_two_way_tx`
- `lecoin.keys` — `KeyManager`, which loads or creates a key pair and signs
  transactions
- `lecoin.balances` — `BalanceMap` and `BalanceError`; processing
  transactions returns a new map and never goes below zero
- `lecoin.block` — `Block`, `HeadBlock`, `BlockError`, `blank_block`,
  `genesis_block`, `new_block`, `unmarshal_block`
- `lecoin.chain` — `LeChain` and `ChainError`: `push_block`,
  `new_chain_block`, `verify_new_block`, `verify_chain`, `register_listener`
- `lecoin.mempool` — `Mempool` of pending, verified transactions
- `lecoin.miner` — `LeMiner`: `run`, `stop`, `mine`, `insert_tx`
- `lecoin.sender` — `LeSender`, which lists wallets and makes transfers
- `lecoin.manager` — `LeCoinManager`, the coin program of a host
- `lecoin.protocol` — `Packet`, `read_packet`, `MessageType`, `lepoch`
- `lecoin.vswitch` — `VSwitch` and the `lecoin-vswitch` command
- `lecoin.vsocket` — `VSocket` and `connect`, a host's link to the switch
- `lecoin.vfs` — `VFS`, a file system confined to one directory
- `lecoin.repl` — `Repl`, the command shell
- `lecoin.vm` — `VM` and `VMConfig`, a host with storage, network and shell
- `lecoin.lefacts` — `LeBronFacts`, the `lefact` program
- `lecoin.client` — `HostConfig`, `parse_config` and the `lecoin-client`
  command

Transactions and blocks use a fixed big-endian binary layout; a signed
transaction or block survives a round trip through `full_marshal` and the
matching `unmarshal_*` function byte for byte.

## What it does not do

- The chain and the pending transactions live in memory only. Only a host's
  private key is written to disk; a restarted host starts from the genesis
  block and does not fetch the chain from its peers.
- There are no transaction fees, and the reward and difficulty never change.
- Signing uses the first 32 bytes of a transaction's signed part directly as
  the ECDSA digest. Those bytes are the sender's (or miner's) public key, so a
  signature does not protect a transaction's amount, receiver or timestamp.
  This is a toy for experiments, not a store of value.
- Everything runs on `127.0.0.1`; hosts on different machines cannot join.