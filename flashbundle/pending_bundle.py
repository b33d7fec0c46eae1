"""
Pending Bundle - Inclusion Tracking

A pending bundle has been accepted by a relay but not yet mined. Awaiting it
polls the chain until the target block exists, then checks whether every
bundle transaction made it into that block.

Key Features:
- Explicit polling state machine
- Unbounded retries on provider errors, missing and pending blocks
- Single-shot resolution: awaiting a completed bundle again is an error

There is no built-in deadline. Wrap the await in `asyncio.wait_for` (or cancel
the task) to bound how long a caller waits.

File: flashbundle/pending_bundle.py
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Generator, List, Optional, Sequence

from eth_typing import HexStr

from .bundle import BundleHash
from .exceptions import BundleNotIncludedError
from .provider import BlockSource, block_number_of, block_transaction_hashes
from .utils import normalize_hash


logger = logging.getLogger(__name__)

# Matches the default polling cadence of chain providers.
DEFAULT_POLL_INTERVAL = 7.0


class PendingBundleState(Enum):
    """Polling states of a pending bundle."""
    WAITING_FOR_INTERVAL = "waiting_for_interval"    # Sleeping before the next poll
    FETCHING_TARGET_BLOCK = "fetching_target_block"  # Block request in flight
    COMPLETED = "completed"                          # Resolved, must not be polled again


class PendingBundle:
    """
    A bundle that has been submitted to a relay but not yet included.

    Awaiting the pending bundle resolves with the bundle hash (None if the
    relay did not return one) once the target block includes every bundle
    transaction, or raises BundleNotIncludedError if the target block was
    mined without them.
    """

    def __init__(
        self,
        bundle_hash: Optional[BundleHash],
        block: int,
        transactions: Sequence[HexStr],
        provider: BlockSource,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        relay_url: Optional[str] = None
    ):
        """
        Initialize a pending bundle.

        Args:
            bundle_hash: Hash returned by the relay, if any
            block: Target block number
            transactions: Hashes of the bundle transactions, in bundle order
            provider: Block source used for polling
            poll_interval: Seconds between block fetches
            relay_url: Relay the bundle was submitted to, for logging
        """
        self.bundle_hash = bundle_hash
        self.block = int(block)
        self.transactions: List[HexStr] = [normalize_hash(tx) for tx in transactions]
        self.poll_interval = poll_interval
        self.relay_url = relay_url

        self._provider = provider
        self._state = PendingBundleState.WAITING_FOR_INTERVAL
        self._polling = False
        self.logger = logging.getLogger(f"{__name__}.PendingBundle")

    @property
    def state(self) -> PendingBundleState:
        return self._state

    @property
    def is_completed(self) -> bool:
        return self._state is PendingBundleState.COMPLETED

    def __repr__(self) -> str:
        return (
            f"PendingBundle(bundle_hash={self.bundle_hash!r}, block={self.block}, "
            f"transactions={len(self.transactions)}, state={self._state.value})"
        )

    def __await__(self) -> Generator[Any, None, Optional[BundleHash]]:
        return self.wait().__await__()

    async def wait(self) -> Optional[BundleHash]:
        """
        Poll until the target block is available and decide inclusion.

        Returns:
            The bundle hash (possibly None) if the bundle was included

        Raises:
            BundleNotIncludedError: If the target block lacks bundle transactions
            RuntimeError: If the pending bundle already completed or is being
                awaited elsewhere
        """
        if self._state is PendingBundleState.COMPLETED:
            raise RuntimeError("polled pending bundle after completion")
        if self._polling:
            raise RuntimeError("pending bundle is already being awaited")

        self._polling = True
        try:
            return await self._poll()
        finally:
            self._polling = False
            if self._state is not PendingBundleState.COMPLETED:
                self._state = PendingBundleState.WAITING_FOR_INTERVAL

    async def _poll(self) -> Optional[BundleHash]:
        while True:
            self._state = PendingBundleState.WAITING_FOR_INTERVAL
            await asyncio.sleep(self.poll_interval)

            self._state = PendingBundleState.FETCHING_TARGET_BLOCK
            try:
                block = await self._provider.get_block(self.block)
            except Exception as e:
                # Provider errors are transient; try again after the interval.
                self.logger.warning(f"Failed to fetch block {self.block}, retrying: {e}")
                continue

            if block is None:
                self.logger.debug(f"Block {self.block} not mined yet")
                continue

            if block_number_of(block) is None:
                self.logger.debug(f"Block {self.block} is still pending")
                continue

            return self._resolve(block)

    def _resolve(self, block: Any) -> Optional[BundleHash]:
        block_hashes = set(block_transaction_hashes(block))
        missing = [tx for tx in self.transactions if tx not in block_hashes]

        self._state = PendingBundleState.COMPLETED

        if missing:
            self.logger.info(
                f"Bundle {self.bundle_hash} not included in block {self.block} "
                f"({len(missing)}/{len(self.transactions)} transactions missing)"
            )
            raise BundleNotIncludedError(self.block, missing)

        self.logger.info(f"Bundle {self.bundle_hash} included in block {self.block}")
        return self.bundle_hash


__all__ = [
    'PendingBundle',
    'PendingBundleState',
    'DEFAULT_POLL_INTERVAL',
]
