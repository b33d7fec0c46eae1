"""
flashbundle - searcher-side client for Flashbots-style bundle relays.

Build a BundleRequest, simulate and submit it through FlashbotsMiddleware or
BroadcasterMiddleware, then await the returned PendingBundle to learn whether
the bundle landed in its target block.
"""

from .bundle import (
    BundleHash,
    BundleRequest,
    BundleStats,
    BundleTransaction,
    SendBundleResponse,
    SimulatedBundle,
    SimulatedTransaction,
    TransactionKind,
)
from .config import FlashbundleConfig, create_broadcaster, create_middleware
from .exceptions import (
    BundleNotIncludedError,
    EmptyResultError,
    FlashbundleError,
    ParameterError,
    ProviderError,
    RelayClientError,
    RelayError,
    RelayProtocolError,
    ResponseDecodeError,
    SigningError,
    TransportError,
)
from .logging_config import configure_logging
from .middleware import BroadcasterMiddleware, FlashbotsMiddleware, RelaySubmission
from .pending_bundle import DEFAULT_POLL_INTERVAL, PendingBundle, PendingBundleState
from .provider import BlockSource, Web3BlockSource
from .relay import FLASHBOTS_SIGNATURE_HEADER, Relay
from .user import UserStats

__version__ = "0.1.0"

__all__ = [
    'BundleHash',
    'BundleRequest',
    'BundleStats',
    'BundleTransaction',
    'SendBundleResponse',
    'SimulatedBundle',
    'SimulatedTransaction',
    'TransactionKind',
    'FlashbundleConfig',
    'create_broadcaster',
    'create_middleware',
    'BundleNotIncludedError',
    'EmptyResultError',
    'FlashbundleError',
    'ParameterError',
    'ProviderError',
    'RelayClientError',
    'RelayError',
    'RelayProtocolError',
    'ResponseDecodeError',
    'SigningError',
    'TransportError',
    'configure_logging',
    'BroadcasterMiddleware',
    'FlashbotsMiddleware',
    'RelaySubmission',
    'DEFAULT_POLL_INTERVAL',
    'PendingBundle',
    'PendingBundleState',
    'BlockSource',
    'Web3BlockSource',
    'FLASHBOTS_SIGNATURE_HEADER',
    'Relay',
    'UserStats',
]
