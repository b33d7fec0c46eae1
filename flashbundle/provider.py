"""
Chain provider seam.

The bundle tracker only needs two things from the chain: the current block
number and a block by number. BlockSource describes that surface and
Web3BlockSource adapts an AsyncWeb3 instance to it.

File: flashbundle/provider.py
"""

import logging
from typing import Any, List, Optional, Protocol

from eth_typing import HexStr
from web3 import AsyncWeb3
from web3.exceptions import BlockNotFound

from .utils import normalize_hash

logger = logging.getLogger(__name__)


class BlockSource(Protocol):
    async def get_block_number(self) -> int:
        ...

    async def get_block(self, block_number: int) -> Optional[Any]:
        ...


class Web3BlockSource:
    """BlockSource backed by an AsyncWeb3 provider."""

    def __init__(self, web3: AsyncWeb3):
        self.web3 = web3

    async def get_block_number(self) -> int:
        return int(await self.web3.eth.block_number)

    async def get_block(self, block_number: int) -> Optional[Any]:
        """Fetch a block, returning None if it does not exist yet."""
        try:
            return await self.web3.eth.get_block(block_number)
        except BlockNotFound:
            logger.debug(f"Block {block_number} not found yet")
            return None


# =============================================================================
# BLOCK FIELD ACCESS
# =============================================================================

def _field(block: Any, name: str) -> Any:
    if isinstance(block, dict) or hasattr(block, "get"):
        return block.get(name)
    return getattr(block, name, None)


def block_number_of(block: Any) -> Optional[int]:
    """Block number, or None for a pending block."""
    number = _field(block, "number")
    return None if number is None else int(number)


def block_transaction_hashes(block: Any) -> List[HexStr]:
    """
    Transaction hashes of a block as lowercase hex.

    Handles blocks fetched with or without full transaction objects.
    """
    hashes = []
    for tx in _field(block, "transactions") or []:
        if isinstance(tx, (bytes, bytearray, str)):
            hashes.append(normalize_hash(tx))
        else:
            hashes.append(normalize_hash(_field(tx, "hash")))
    return hashes
