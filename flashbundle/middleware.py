"""
Submission Coordinator - Single Relay and Broadcast Middlewares

Validates bundles, simulates them and submits them to one or many relays,
turning every accepted submission into a PendingBundle the caller can await.

Key Features:
- Pre-flight validation with no network call for incomplete bundles
- Optional dedicated simulation relay
- Concurrent broadcast with independent per-relay outcomes
- Bundle and searcher statistics queries

Note: the middlewares do NOT sign transactions. Sign them elsewhere and pass
the signed transactions in the bundle; the relay signer is only the searcher
identity that authenticates requests.

File: flashbundle/middleware.py
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import aiohttp
from eth_account.signers.local import LocalAccount

from .bundle import (
    BundleHash,
    BundleRequest,
    BundleStats,
    GetBundleStatsParams,
    GetUserStatsParams,
    SendBundleResponse,
    SimulatedBundle,
)
from .exceptions import (
    EmptyResultError,
    FlashbundleError,
    ProviderError,
    RelayError,
    ResponseDecodeError,
)
from .pending_bundle import DEFAULT_POLL_INTERVAL, PendingBundle
from .provider import BlockSource
from .relay import Relay
from .user import UserStats


logger = logging.getLogger(__name__)

T = TypeVar('T')

# =============================================================================
# RELAY METHODS
# =============================================================================

CALL_BUNDLE_METHOD = "eth_callBundle"
SEND_BUNDLE_METHOD = "eth_sendBundle"
GET_BUNDLE_STATS_METHOD = "flashbots_getBundleStats"
GET_USER_STATS_METHOD = "flashbots_getUserStats"


def _decode(decoder: Callable[[Any], T], result: Any, relay: Relay) -> T:
    """Decode a relay result, mapping malformed payloads to ResponseDecodeError."""
    try:
        return decoder(result)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ResponseDecodeError(str(e), json.dumps(result), relay.url) from e


async def _request_data(relay: Relay, method: str, params: Any) -> Any:
    """Send a request whose result must not be null."""
    result = await relay.request(method, params)
    if result is None:
        raise EmptyResultError(method, relay.url)
    return result


async def _simulate(relay: Relay, bundle: BundleRequest) -> SimulatedBundle:
    bundle.validate_for_simulation()
    result = await _request_data(relay, CALL_BUNDLE_METHOD, bundle)
    return _decode(SimulatedBundle.from_dict, result, relay)


async def _send(
    relay: Relay,
    bundle: BundleRequest,
    provider: BlockSource,
    poll_interval: float
) -> PendingBundle:
    result = await relay.request(SEND_BUNDLE_METHOD, bundle)
    response = _decode(SendBundleResponse.from_result, result, relay)

    logger.info(
        f"Bundle for block {bundle.target_block} accepted by {relay.url} "
        f"(hash: {response.bundle_hash})"
    )

    return PendingBundle(
        bundle_hash=response.bundle_hash,
        block=bundle.target_block,
        transactions=bundle.transaction_hashes(),
        provider=provider,
        poll_interval=poll_interval,
        relay_url=relay.url
    )


async def _current_block_number(provider: BlockSource) -> int:
    try:
        return await provider.get_block_number()
    except Exception as e:
        raise ProviderError(f"Could not fetch current block number: {e}") from e


# =============================================================================
# SINGLE RELAY MIDDLEWARE
# =============================================================================

class FlashbotsMiddleware:
    """
    Sends bundles to a single relay.

    Simulations go to `simulation_relay` when one is set, otherwise to the
    submission relay.
    """

    def __init__(
        self,
        provider: BlockSource,
        relay_url: str,
        relay_signer: LocalAccount,
        session: Optional[aiohttp.ClientSession] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        close_session: bool = False
    ):
        """
        Initialize the middleware.

        Args:
            provider: Chain block source used for inclusion tracking
            relay_url: Relay endpoint URL
            relay_signer: Searcher identity used to sign relay requests
            session: Shared HTTP session
            poll_interval: Seconds between inclusion polls
            close_session: Close the shared session in `close()`
        """
        self.provider = provider
        self._session = session
        self._close_session = close_session
        self.relay = Relay(relay_url, relay_signer, session)
        self.simulation_relay: Optional[Relay] = None
        self.poll_interval = poll_interval
        self.logger = logging.getLogger(f"{__name__}.FlashbotsMiddleware")

    def set_simulation_relay(
        self,
        relay_url: str,
        signer: Optional[LocalAccount] = None
    ) -> None:
        """
        Use a separate endpoint for simulations.

        Args:
            relay_url: Simulation endpoint, e.g. a node supporting eth_callBundle
            signer: Signer for the endpoint; plain nodes need none
        """
        self.simulation_relay = Relay(relay_url, signer, self._session)
        self.logger.info(f"Simulation relay set to {relay_url}")

    async def simulate_bundle(self, bundle: BundleRequest) -> SimulatedBundle:
        """
        Simulate a bundle with `eth_callBundle`.

        Args:
            bundle: Bundle with block, simulation block and timestamp set

        Returns:
            Simulation results

        Raises:
            ParameterError: If simulation parameters are missing
            RelayError: If the relay call fails or returns no result
        """
        return await _simulate(self.simulation_relay or self.relay, bundle)

    async def send_bundle(self, bundle: BundleRequest) -> PendingBundle:
        """
        Submit a bundle with `eth_sendBundle`.

        Returns as soon as the relay accepts the bundle; await the returned
        PendingBundle to learn whether it was included.

        Args:
            bundle: Bundle with at least one transaction and a target block

        Returns:
            Pending bundle tracking the target block

        Raises:
            ParameterError: If required bundle fields are missing
            RelayError: If the relay call fails
        """
        bundle.validate_for_submission()
        return await _send(self.relay, bundle, self.provider, self.poll_interval)

    async def send_raw_transaction(self, raw_transaction: Any) -> PendingBundle:
        """
        Submit one signed transaction as a bundle for the next block.

        The bundle does not allow reverts, sets no timestamps and is not
        simulated beforehand.

        Args:
            raw_transaction: Signed transaction object, raw bytes or hex string

        Returns:
            Pending bundle for the next block
        """
        latest_block = await _current_block_number(self.provider)
        bundle = (
            BundleRequest()
            .push_transaction(raw_transaction)
            .set_block(latest_block + 1)
        )
        return await self.send_bundle(bundle)

    async def get_bundle_stats(self, bundle_hash: BundleHash, block_number: int) -> BundleStats:
        """
        Get relay stats for a submitted bundle.

        Args:
            bundle_hash: Hash returned on submission
            block_number: Target block of the bundle

        Returns:
            Bundle stats
        """
        params = GetBundleStatsParams(bundle_hash=bundle_hash, block_number=block_number)
        result = await _request_data(self.relay, GET_BUNDLE_STATS_METHOD, params)
        return _decode(BundleStats.from_dict, result, self.relay)

    async def get_user_stats(self) -> UserStats:
        """
        Get stats for the searcher identity that signs requests.

        Returns:
            User stats as of the current block
        """
        latest_block = await _current_block_number(self.provider)
        params = GetUserStatsParams(block_number=latest_block)
        result = await _request_data(self.relay, GET_USER_STATS_METHOD, params)
        return _decode(UserStats.from_dict, result, self.relay)

    def get_statistics(self) -> Dict[str, Any]:
        """Get request statistics for the configured relays."""
        stats = {"relay": self.relay.get_statistics()}
        if self.simulation_relay is not None:
            stats["simulation_relay"] = self.simulation_relay.get_statistics()
        return stats

    async def close(self) -> None:
        await self.relay.close()
        if self.simulation_relay is not None:
            await self.simulation_relay.close()
        if self._close_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "FlashbotsMiddleware":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


# =============================================================================
# BROADCAST MIDDLEWARE
# =============================================================================

@dataclass
class RelaySubmission:
    """Outcome of submitting a bundle to one relay during a broadcast."""
    relay_url: str
    pending_bundle: Optional[PendingBundle] = None
    error: Optional[FlashbundleError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BroadcasterMiddleware:
    """
    Broadcasts bundles to several relays sharing one searcher identity.

    Each relay is contacted concurrently and its outcome is reported on its
    own: a failing relay never affects the others. Simulations go to the
    simulation relay, which defaults to the first submission relay.
    """

    def __init__(
        self,
        provider: BlockSource,
        relay_urls: Sequence[str],
        relay_signer: LocalAccount,
        simulation_relay_url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        close_session: bool = False
    ):
        """
        Initialize the broadcaster.

        Args:
            provider: Chain block source used for inclusion tracking
            relay_urls: Relay endpoints to broadcast to
            relay_signer: Searcher identity shared by all relays
            simulation_relay_url: Endpoint for simulations
            session: Shared HTTP session
            poll_interval: Seconds between inclusion polls
            close_session: Close the shared session in `close()`
        """
        if not relay_urls:
            raise ValueError("At least one relay URL is required")

        self.provider = provider
        self._session = session
        self._close_session = close_session
        self.relays: List[Relay] = [Relay(url, relay_signer, session) for url in relay_urls]
        if simulation_relay_url is None:
            self.simulation_relay = self.relays[0]
        else:
            self.simulation_relay = Relay(simulation_relay_url, relay_signer, session)
        self.poll_interval = poll_interval
        self.logger = logging.getLogger(f"{__name__}.BroadcasterMiddleware")

        self.logger.info(
            f"Broadcaster initialized with {len(self.relays)} relays "
            f"(simulation relay: {self.simulation_relay.url})"
        )

    async def simulate_bundle(self, bundle: BundleRequest) -> SimulatedBundle:
        """Simulate a bundle on the simulation relay."""
        return await _simulate(self.simulation_relay, bundle)

    async def send_bundle(self, bundle: BundleRequest) -> List[RelaySubmission]:
        """
        Submit a bundle to every relay concurrently.

        Args:
            bundle: Bundle with at least one transaction and a target block

        Returns:
            One submission outcome per relay, in relay order

        Raises:
            ParameterError: If required bundle fields are missing
        """
        bundle.validate_for_submission()

        self.logger.info(
            f"Broadcasting bundle with {len(bundle.transactions)} transactions "
            f"for block {bundle.target_block} to {len(self.relays)} relays"
        )

        outcomes = await asyncio.gather(
            *(_send(relay, bundle, self.provider, self.poll_interval) for relay in self.relays),
            return_exceptions=True
        )

        submissions = []
        for relay, outcome in zip(self.relays, outcomes):
            if isinstance(outcome, FlashbundleError):
                self.logger.error(f"Bundle submission to {relay.url} failed: {outcome}")
                submissions.append(RelaySubmission(relay_url=relay.url, error=outcome))
            elif isinstance(outcome, Exception):
                self.logger.exception(
                    f"Unexpected error submitting bundle to {relay.url}", exc_info=outcome
                )
                error = RelayError(f"Unexpected error: {outcome!r}", relay.url)
                error.__cause__ = outcome
                submissions.append(RelaySubmission(relay_url=relay.url, error=error))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                submissions.append(RelaySubmission(relay_url=relay.url, pending_bundle=outcome))

        accepted = sum(1 for submission in submissions if submission.ok)
        self.logger.info(f"Bundle accepted by {accepted}/{len(submissions)} relays")

        return submissions

    def get_statistics(self) -> Dict[str, Any]:
        """Get request statistics for every relay."""
        return {
            "relays": [relay.get_statistics() for relay in self.relays],
            "simulation_relay": self.simulation_relay.get_statistics()
        }

    async def close(self) -> None:
        for relay in self.relays:
            await relay.close()
        if self.simulation_relay not in self.relays:
            await self.simulation_relay.close()
        if self._close_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BroadcasterMiddleware":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


__all__ = [
    'FlashbotsMiddleware',
    'BroadcasterMiddleware',
    'RelaySubmission',
    'CALL_BUNDLE_METHOD',
    'SEND_BUNDLE_METHOD',
    'GET_BUNDLE_STATS_METHOD',
    'GET_USER_STATS_METHOD',
]
