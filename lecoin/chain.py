"""The blockchain: every known block, the heads of its branches and the trusted head."""

from __future__ import annotations

import queue
import threading
from typing import Dict, Iterable, List, Optional

from .balances import BalanceError, BalanceMap
from .block import (
    GENESIS_HASH,
    START_REWARD,
    START_TARGET,
    Block,
    BlockError,
    BlockPredicate,
    HeadBlock,
    TwoBlockPredicate,
    genesis_block,
    new_block,
)
from .tx import Tx
from .wallet import Wallet


class ChainError(Exception):
    """A block cannot be placed on the chain, or a branch fails verification."""

    def __init__(self, message: str, invalid_txs: Iterable[Tx] = ()) -> None:
        super().__init__(message)
        self.invalid_txs: List[Tx] = list(invalid_txs)


def _verify_block(block: Block) -> bool:
    try:
        block.verify()
    except BlockError:
        return False
    return True


def _verify_target(prev_block: Block, block: Block) -> bool:
    # Only the default difficulty is accepted for now.
    return block.target == START_TARGET


class LeChain:
    """All blocks seen so far, organised as branches growing from the genesis block.

    The trusted head is the longest branch; on a tie the one that arrived first wins.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: List["queue.Queue[bool]"] = []
        genesis = genesis_block()
        head = HeadBlock(genesis.block_hash, BalanceMap(), 1, valid=True)
        self._heads: Dict[bytes, HeadBlock] = {genesis.block_hash: head}
        self._blocks: Dict[bytes, Block] = {genesis.block_hash: genesis}
        self._head = head

    @property
    def length(self) -> int:
        """Length in blocks of the trusted branch, genesis included."""
        with self._lock:
            return self._head.length

    @property
    def head(self) -> HeadBlock:
        with self._lock:
            return self._head

    def balance(self, wallet: Wallet) -> float:
        return self.head.balances.balance(wallet)

    def balances(self) -> Dict[str, float]:
        return self.head.balances.balances()

    def balance_string(self) -> str:
        return str(self.head.balances)

    def _get_block(self, block_hash: bytes) -> Block:
        try:
            return self._blocks[block_hash]
        except KeyError:
            raise ChainError("could not find block") from None

    def _traverse_back(
        self,
        head: HeadBlock,
        target_hash: bytes,
        block_ok: Optional[BlockPredicate] = None,
        pair_ok: Optional[TwoBlockPredicate] = None,
    ) -> HeadBlock:
        """Walk back from ``head`` to ``target_hash``, undoing transactions on the way.

        Returns a head for the target block carrying that block's balances.
        """
        balances = head.balances
        block = self._get_block(head.block_hash)
        seen = set()
        steps = 0
        while block.block_hash != target_hash:
            if block.block_hash in seen:
                raise ChainError("cycle detected in traversing back through blocks")
            seen.add(block.block_hash)
            if block.block_hash == GENESIS_HASH or steps == head.length - 1:
                raise ChainError("dead end: back to the genesis block")
            if block_ok is not None and not block_ok(block):
                raise ChainError("block predicate failed")
            try:
                balances = balances.process_transactions(block.transactions, False)
            except BalanceError as exc:
                raise ChainError(str(exc), exc.invalid_txs) from exc
            prev_block = self._get_block(block.prev_hash)
            if pair_ok is not None and not pair_ok(prev_block, block):
                raise ChainError("two block predicate failed")
            block = prev_block
            steps += 1
        return HeadBlock(block.block_hash, balances, head.length - steps)

    def _find_head(
        self,
        target_hash: bytes,
        block_ok: Optional[BlockPredicate] = None,
        pair_ok: Optional[TwoBlockPredicate] = None,
    ) -> HeadBlock:
        error: Optional[ChainError] = None
        for head in list(self._heads.values()):
            try:
                return self._traverse_back(head, target_hash, block_ok, pair_ok)
            except ChainError as exc:
                error = exc
        raise error if error is not None else ChainError("no heads in the chain")

    def push_block(self, block: Block, blocks=None) -> HeadBlock:
        """Verify ``block`` and add it on top of the branch ending in its parent.

        Returns the new head. When ``blocks`` is given, the block is put on it
        once accepted. Raises BlockError or ChainError when the block is rejected.
        """
        with self._lock:
            block.verify()
            base = self._find_head(block.prev_hash)
            try:
                balances = base.balances.process_transactions(block.transactions, True)
            except BalanceError as exc:
                raise ChainError(str(exc), exc.invalid_txs) from exc
            new_head = HeadBlock(block.block_hash, balances, base.length + 1)
            base_block = self._get_block(base.block_hash)
            if not _verify_target(base_block, block):
                raise ChainError("could not verify target on new block")
            self._heads[new_head.block_hash] = new_head
            self._blocks[block.block_hash] = block
            self._set_head()
        if blocks is not None:
            blocks.put(block)
        return new_head

    def new_chain_block(self, miner: Wallet) -> Block:
        """An empty block on top of the trusted head, paying ``miner`` the reward."""
        with self._lock:
            return new_block(self._head.block_hash, miner, START_REWARD, START_TARGET)

    def register_listener(self) -> "queue.Queue[bool]":
        """A queue that receives True whenever the trusted head changes."""
        signal: "queue.Queue[bool]" = queue.Queue(maxsize=1)
        with self._lock:
            self._listeners.append(signal)
        return signal

    def broadcast(self) -> None:
        """Signal every listener; a listener with a pending signal keeps just one."""
        with self._lock:
            listeners = list(self._listeners)
        for signal in listeners:
            try:
                signal.put_nowait(True)
            except queue.Full:
                pass

    def verify_new_block(self, block: Block) -> None:
        """Check a candidate block's transactions against the chain (not its nonce).

        Raises ChainError listing the offending transactions.
        """
        with self._lock:
            try:
                block.verify_txs()
            except BlockError as exc:
                raise ChainError(str(exc), exc.invalid_txs) from exc
            base = self._find_head(block.prev_hash, _verify_block, _verify_target)
            try:
                base.balances.process_transactions(block.transactions, True)
            except BalanceError as exc:
                raise ChainError(str(exc), exc.invalid_txs) from exc

    def verify_chain(self, head: HeadBlock) -> None:
        """Verify every block and target back to genesis; marks the head valid on success."""
        with self._lock:
            if head.valid:
                return
            self._traverse_back(head, GENESIS_HASH, _verify_block, _verify_target)
            head.valid = True

    def _set_head(self) -> None:
        current = self._head
        changed = False
        for head in self._heads.values():
            if head.length > current.length:
                current = head
                changed = True
        self._head = current
        if changed:
            self.broadcast()