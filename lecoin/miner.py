"""A miner: pulls transactions from its mempool, finds a nonce and pushes blocks."""

from __future__ import annotations

import logging
import queue
import random
import threading
from typing import List, Optional

from .block import MAX_TXS, Block, BlockError
from .chain import ChainError, LeChain
from .keys import KeyManager
from .mempool import Mempool
from .tx import Tx, TxError

NO_NONCE = 0

_POLL_INTERVAL = 0.1

log = logging.getLogger(__name__)


def _drain(events: "queue.Queue") -> bool:
    drained = False
    while True:
        try:
            events.get_nowait()
        except queue.Empty:
            return drained
        drained = True


class LeMiner:
    """Mines blocks on top of a chain, paying the reward to its own wallet.

    Mined blocks are put on ``blocks``; setting ``abort`` stops a running miner.
    """

    def __init__(self, chain: LeChain, keys: KeyManager) -> None:
        self.chain = chain
        self.keys = keys
        self.mempool = Mempool()
        self.blocks: "queue.Queue[Block]" = queue.Queue()
        self.abort = threading.Event()
        self._lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running

    def run(self) -> None:
        """Start mining in the background; raises RuntimeError if already running."""
        with self._lock:
            if self._running:
                raise RuntimeError("already running")
            self._running = True
            self.mempool.run()
            chain_events = self.chain.register_listener()
            self._thread = threading.Thread(
                target=self.mine,
                args=(chain_events, self.abort, self.blocks, MAX_TXS - 1),
                daemon=True,
            )
            self._thread.start()

    def stop(self) -> None:
        """Abort the background miner and wait for it to finish."""
        with self._lock:
            thread = self._thread
        self.abort.set()
        if thread is not None:
            thread.join()
        with self._lock:
            self._thread = None
            self._running = False
            self.abort.clear()

    def mine(self, chain_events, abort, blocks, num_tx) -> None:
        """Mine blocks of ``num_tx`` transactions plus the reward until ``abort`` is set.

        A signal on ``chain_events`` abandons the block in progress and starts afresh.
        """
        while not abort.is_set():
            if _drain(chain_events):
                continue
            block = self.chain.new_chain_block(self.keys.wallet)
            try:
                self._build_block(block, num_tx)
            except TimeoutError:
                continue
            except (BlockError, ChainError, TxError) as exc:
                log.info("failed to build block: %s", exc)
                continue
            log.debug("built a block")
            if self._mine_block(block, chain_events, abort):
                log.debug("pushing block with %d txs", num_tx)
                try:
                    self.chain.push_block(block, blocks)
                except (BlockError, ChainError) as exc:
                    log.info("failed to push block, undoing: %s", exc)
                    self._requeue(block)
            else:
                log.debug("failed to mine block, undoing")
                self._requeue(block)

    def _mine_block(self, block: Block, chain_events, abort) -> bool:
        counter = 0
        while True:
            if abort.is_set() or not chain_events.empty():
                log.debug("aborted")
                return False
            nonce = random.getrandbits(32)
            if block.try_nonce(nonce):
                block.nonce = nonce
                return True
            counter += 1
            if counter % 100 == 0:
                block.stamp()

    def insert_tx(self, tx: Tx) -> None:
        """Add a transaction to the mempool; raises TxError if it does not verify."""
        self.mempool.insert_tx(tx)

    def _requeue(self, block: Block) -> None:
        miner_id = block.miner_tx.txid if block.miner_tx is not None else None
        self.mempool.insert_txs(t for t in block.tx_list() if t.txid != miner_id)

    def _build_block(self, block: Block, n: int) -> None:
        txs: List[Tx] = self.mempool.pop_txs(n, timeout=_POLL_INTERVAL)
        try:
            block.insert_transactions(txs)
            self.keys.sign_transaction(block.miner_tx)
        except (BlockError, TxError):
            self.mempool.insert_txs(txs)
            raise
        try:
            self.chain.verify_new_block(block)
        except ChainError as exc:
            invalid = {t.txid for t in exc.invalid_txs}
            self.mempool.insert_txs(t for t in txs if t.txid not in invalid)
            raise