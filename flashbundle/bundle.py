"""
Bundle Model - Requests and Simulation Results

Data structures for bundles submitted to a relay and for the records a relay
returns after simulating them. Everything here is pure data: no network calls.

Key Features:
- Immutable bundle requests built through chained setters
- Camel-case wire serialization that omits unset fields
- Tolerant decoding of simulation results and bundle statistics

File: flashbundle/bundle.py
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from eth_typing import ChecksumAddress, HexStr
from eth_utils import encode_hex, keccak

from .exceptions import ParameterError
from .utils import (
    decode_address,
    decode_data,
    decode_hash,
    decode_optional_address,
    decode_optional_datetime,
    decode_u256,
    decode_u64,
    encode_quantity,
    normalize_hash,
    to_bytes,
)

# A bundle hash, lowercase 0x-prefixed hex.
BundleHash = HexStr


# =============================================================================
# BUNDLE TRANSACTIONS
# =============================================================================

class TransactionKind(str, Enum):
    """Origin of a transaction added to a bundle."""
    SIGNED = "signed"    # Pre-signed transaction object
    RAW = "raw"          # Raw signed transaction bytes


@dataclass(frozen=True)
class BundleTransaction:
    """
    A transaction that can be added to a bundle.

    Either a pre-signed transaction object (anything exposing its raw encoding
    as `raw_transaction`, such as eth_account's SignedTransaction) or the raw
    signed bytes themselves. Both resolve to the same wire encoding.
    """
    kind: TransactionKind
    raw: bytes
    signed: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_signed(cls, transaction: Any) -> "BundleTransaction":
        """Wrap a signed transaction object."""
        raw = getattr(transaction, "raw_transaction", None)
        if raw is None:
            raw = getattr(transaction, "rawTransaction", None)
        if raw is None:
            raise TypeError(
                f"{type(transaction).__name__} does not expose a raw signed encoding"
            )
        return cls(kind=TransactionKind.SIGNED, raw=to_bytes(raw), signed=transaction)

    @classmethod
    def from_raw(cls, raw: Union[bytes, bytearray, str]) -> "BundleTransaction":
        """Wrap raw signed transaction bytes or their hex encoding."""
        return cls(kind=TransactionKind.RAW, raw=to_bytes(raw))

    @classmethod
    def coerce(cls, value: Any) -> "BundleTransaction":
        """Convert any supported transaction representation."""
        if isinstance(value, BundleTransaction):
            return value
        if isinstance(value, (bytes, bytearray, str)):
            return cls.from_raw(value)
        return cls.from_signed(value)

    @property
    def hash(self) -> HexStr:
        """Keccak-256 hash of the raw signed encoding."""
        return HexStr(encode_hex(keccak(self.raw)))

    def to_hex(self) -> HexStr:
        """Hex encoding used on the wire."""
        return HexStr(encode_hex(self.raw))


# =============================================================================
# BUNDLE REQUEST
# =============================================================================

@dataclass(frozen=True)
class BundleRequest:
    """
    A bundle that can be submitted to a relay.

    The bundle can include your own transactions and transactions taken from
    the mempool. Setters return a new bundle, so calls chain:

        bundle = (
            BundleRequest()
            .push_transaction(signed_tx)
            .set_block(block_number + 1)
        )

    Submitting requires at least one transaction and a target block.
    Simulating additionally requires a simulation block and timestamp.
    """
    transactions: Tuple[BundleTransaction, ...] = ()
    revertible_transaction_hashes: Tuple[HexStr, ...] = ()
    target_block: Optional[int] = None
    min_timestamp: Optional[int] = None
    max_timestamp: Optional[int] = None
    simulation_block: Optional[int] = None
    simulation_timestamp: Optional[int] = None
    simulation_basefee: Optional[int] = None

    def push_transaction(self, transaction: Any) -> "BundleRequest":
        """
        Add a transaction to the bundle.

        Args:
            transaction: Signed transaction object, raw bytes or hex string

        Returns:
            Updated bundle request
        """
        tx = BundleTransaction.coerce(transaction)
        return replace(self, transactions=self.transactions + (tx,))

    def push_revertible_transaction(self, transaction: Any) -> "BundleRequest":
        """
        Add a transaction that is allowed to revert.

        The bundle stays valid even if this transaction reverts.

        Args:
            transaction: Signed transaction object, raw bytes or hex string

        Returns:
            Updated bundle request
        """
        tx = BundleTransaction.coerce(transaction)
        return replace(
            self,
            transactions=self.transactions + (tx,),
            revertible_transaction_hashes=self.revertible_transaction_hashes + (tx.hash,),
        )

    def transaction_hashes(self) -> List[HexStr]:
        """Hashes of the bundle transactions, in push order."""
        return [tx.hash for tx in self.transactions]

    @property
    def block(self) -> Optional[int]:
        return self.target_block

    def set_block(self, block: int) -> "BundleRequest":
        """Set the target block of the bundle."""
        return replace(self, target_block=int(block))

    def set_simulation_block(self, block: int) -> "BundleRequest":
        """Set the block that determines the state for simulation."""
        return replace(self, simulation_block=int(block))

    def set_simulation_timestamp(self, timestamp: int) -> "BundleRequest":
        """Set the UNIX timestamp used for simulation."""
        return replace(self, simulation_timestamp=int(timestamp))

    def set_simulation_basefee(self, basefee: int) -> "BundleRequest":
        """Set the base fee used for simulation; the node picks one if unset."""
        return replace(self, simulation_basefee=int(basefee))

    def set_min_timestamp(self, timestamp: int) -> "BundleRequest":
        """Set the minimum UNIX timestamp for which the bundle is valid."""
        return replace(self, min_timestamp=int(timestamp))

    def set_max_timestamp(self, timestamp: int) -> "BundleRequest":
        """Set the maximum UNIX timestamp for which the bundle is valid."""
        return replace(self, max_timestamp=int(timestamp))

    def validate_for_simulation(self) -> None:
        """Raise ParameterError unless the bundle can be simulated."""
        if (
            self.target_block is None
            or self.simulation_block is None
            or self.simulation_timestamp is None
        ):
            raise ParameterError(
                "Simulation requires block, simulation_block and simulation_timestamp"
            )

    def validate_for_submission(self) -> None:
        """Raise ParameterError unless the bundle can be submitted."""
        if not self.transactions:
            raise ParameterError("Bundle must contain at least one transaction")
        if self.target_block is None:
            raise ParameterError("Bundle target block is not set")
        if (self.min_timestamp is None) != (self.max_timestamp is None):
            raise ParameterError("min_timestamp and max_timestamp must both be set or unset")

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the relay wire format.

        Unset optional fields are left out entirely since some relays reject
        null or unknown keys. `txs` is always present.
        """
        data: Dict[str, Any] = {
            "txs": [tx.to_hex() for tx in self.transactions]
        }

        if self.revertible_transaction_hashes:
            data["revertingTxHashes"] = list(self.revertible_transaction_hashes)
        if self.target_block is not None:
            data["blockNumber"] = encode_quantity(self.target_block)
        if self.min_timestamp is not None:
            data["minTimestamp"] = self.min_timestamp
        if self.max_timestamp is not None:
            data["maxTimestamp"] = self.max_timestamp
        if self.simulation_block is not None:
            data["stateBlockNumber"] = encode_quantity(self.simulation_block)
        if self.simulation_timestamp is not None:
            data["timestamp"] = self.simulation_timestamp
        if self.simulation_basefee is not None:
            data["baseFee"] = self.simulation_basefee

        return data


# =============================================================================
# SIMULATION RESULTS
# =============================================================================

@dataclass(frozen=True)
class SimulatedTransaction:
    """Details for a transaction simulated as part of a bundle."""
    hash: HexStr
    coinbase_diff: int             # Coinbase balance change, gas fees included
    coinbase_tip: int              # Eth sent directly to coinbase
    gas_price: int
    gas_used: int
    gas_fees: int
    from_address: ChecksumAddress
    to_address: Optional[ChecksumAddress]  # None for contract creation
    value: Optional[bytes] = None  # Return data
    error: Optional[str] = None
    revert: Optional[str] = None

    def effective_gas_price(self) -> int:
        """Effective gas price, i.e. `coinbase_diff // gas_used`."""
        if self.gas_used == 0:
            return 0
        return self.coinbase_diff // self.gas_used

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SimulatedTransaction":
        return SimulatedTransaction(
            hash=decode_hash(data["txHash"]),
            coinbase_diff=decode_u256(data["coinbaseDiff"]),
            coinbase_tip=decode_u256(data["ethSentToCoinbase"]),
            gas_price=decode_u256(data["gasPrice"]),
            gas_used=decode_u256(data["gasUsed"]),
            gas_fees=decode_u256(data["gasFees"]),
            from_address=decode_address(data["fromAddress"]),
            to_address=decode_optional_address(data["toAddress"]),
            value=decode_data(data.get("value")),
            error=data.get("error"),
            revert=data.get("revert"),
        )


@dataclass(frozen=True)
class SimulatedBundle:
    """Details of a simulated bundle."""
    hash: BundleHash
    coinbase_diff: int
    coinbase_tip: int
    gas_price: int
    gas_used: int
    gas_fees: int
    simulation_block: int
    transactions: Tuple[SimulatedTransaction, ...]

    def effective_gas_price(self) -> int:
        """
        Effective gas price of the bundle, i.e. `coinbase_diff // gas_used`.

        This also approximates the bundle's score.
        """
        if self.gas_used == 0:
            return 0
        return self.coinbase_diff // self.gas_used

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SimulatedBundle":
        return SimulatedBundle(
            hash=normalize_hash(data["bundleHash"]),
            coinbase_diff=decode_u256(data["coinbaseDiff"]),
            coinbase_tip=decode_u256(data["ethSentToCoinbase"]),
            gas_price=decode_u256(data["bundleGasPrice"]),
            gas_used=decode_u256(data["totalGasUsed"]),
            gas_fees=decode_u256(data["gasFees"]),
            simulation_block=decode_u64(data["stateBlockNumber"]),
            transactions=tuple(
                SimulatedTransaction.from_dict(entry) for entry in data["results"]
            ),
        )


# =============================================================================
# SUBMISSION AND STATS RECORDS
# =============================================================================

@dataclass(frozen=True)
class SendBundleResponse:
    """Relay acknowledgment of a submitted bundle; the hash may be omitted."""
    bundle_hash: Optional[BundleHash] = None

    @staticmethod
    def from_result(result: Any) -> "SendBundleResponse":
        if result is None:
            return SendBundleResponse()
        if isinstance(result, str):
            return SendBundleResponse(bundle_hash=normalize_hash(result))
        bundle_hash = result.get("bundleHash")
        if bundle_hash is None:
            return SendBundleResponse()
        return SendBundleResponse(bundle_hash=normalize_hash(bundle_hash))


@dataclass(frozen=True)
class BundleStats:
    """Relay-side stats for a submitted bundle."""
    is_simulated: bool
    is_sent_to_miners: bool
    is_high_priority: bool
    simulated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    sent_to_miners_at: Optional[datetime] = None

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "BundleStats":
        return BundleStats(
            is_simulated=bool(data["isSimulated"]),
            is_sent_to_miners=bool(data["isSentToMiners"]),
            is_high_priority=bool(data["isHighPriority"]),
            simulated_at=decode_optional_datetime(data.get("simulatedAt")),
            submitted_at=decode_optional_datetime(data.get("submittedAt")),
            sent_to_miners_at=decode_optional_datetime(data.get("sentToMinersAt")),
        )


@dataclass(frozen=True)
class GetBundleStatsParams:
    bundle_hash: BundleHash
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bundleHash": self.bundle_hash,
            "blockNumber": encode_quantity(self.block_number),
        }


@dataclass(frozen=True)
class GetUserStatsParams:
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        return {"blockNumber": encode_quantity(self.block_number)}


__all__ = [
    'BundleHash',
    'TransactionKind',
    'BundleTransaction',
    'BundleRequest',
    'SimulatedTransaction',
    'SimulatedBundle',
    'SendBundleResponse',
    'BundleStats',
    'GetBundleStatsParams',
    'GetUserStatsParams',
]
