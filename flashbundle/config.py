"""
Configuration Management

Loads relay endpoints, the searcher signing key and transport settings from
environment variables, with `.env` file support through python-dotenv, and
builds ready-to-use middlewares from them.

Environment variables:
- FLASHBUNDLE_RELAY_URLS: Comma separated relay endpoints
- FLASHBUNDLE_SIMULATION_RELAY_URL: Endpoint used for simulations
- FLASHBUNDLE_SIGNING_KEY: Searcher identity private key
- FLASHBUNDLE_POLL_INTERVAL: Seconds between inclusion polls
- FLASHBUNDLE_REQUEST_TIMEOUT / FLASHBUNDLE_CONNECT_TIMEOUT: HTTP timeouts
- FLASHBUNDLE_CONNECTION_LIMIT: HTTP connection pool size
- FLASHBUNDLE_LOG_LEVEL: Logging level

File: flashbundle/config.py
"""

import logging
import os
from typing import List, Optional

import aiohttp
from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount

from .logging_config import configure_logging
from .middleware import BroadcasterMiddleware, FlashbotsMiddleware
from .pending_bundle import DEFAULT_POLL_INTERVAL
from .provider import BlockSource
from .relay import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_CONNECTION_LIMIT,
    DEFAULT_REQUEST_TIMEOUT,
    create_session,
)

logger = logging.getLogger(__name__)

DEFAULT_RELAY_URL = "https://relay.flashbots.net"


# =============================================================================
# HELPER FUNCTIONS FOR ENVIRONMENT VARIABLES
# =============================================================================

def get_env_int(key: str, default: str) -> int:
    """Safely convert environment variable to integer, handling float strings."""
    return int(float(os.getenv(key, default)))


def get_env_float(key: str, default: str) -> float:
    """Convert environment variable to float."""
    return float(os.getenv(key, default))


def get_env_list(key: str, default: str = '') -> list:
    """Convert environment variable to list, filtering empty values."""
    value = os.getenv(key, default)
    if not value:
        return []
    return [item.strip() for item in value.split(',') if item.strip()]


# =============================================================================
# CONFIGURATION
# =============================================================================

class FlashbundleConfig:
    """
    Relay and transport configuration.

    Values come from keyword arguments first, then from the environment.
    """

    def __init__(
        self,
        relay_urls: Optional[List[str]] = None,
        simulation_relay_url: Optional[str] = None,
        signing_key: Optional[str] = None,
        poll_interval: Optional[float] = None,
        request_timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        connection_limit: Optional[int] = None,
        log_level: Optional[str] = None
    ):
        self.relay_urls = relay_urls if relay_urls is not None else get_env_list(
            "FLASHBUNDLE_RELAY_URLS", DEFAULT_RELAY_URL
        )
        self.simulation_relay_url = simulation_relay_url or os.getenv(
            "FLASHBUNDLE_SIMULATION_RELAY_URL"
        ) or None
        self.signing_key = signing_key or os.getenv("FLASHBUNDLE_SIGNING_KEY") or None
        self.poll_interval = poll_interval if poll_interval is not None else get_env_float(
            "FLASHBUNDLE_POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL)
        )
        self.request_timeout = request_timeout if request_timeout is not None else get_env_float(
            "FLASHBUNDLE_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT)
        )
        self.connect_timeout = connect_timeout if connect_timeout is not None else get_env_float(
            "FLASHBUNDLE_CONNECT_TIMEOUT", str(DEFAULT_CONNECT_TIMEOUT)
        )
        self.connection_limit = connection_limit if connection_limit is not None else get_env_int(
            "FLASHBUNDLE_CONNECTION_LIMIT", str(DEFAULT_CONNECTION_LIMIT)
        )
        self.log_level = (log_level or os.getenv("FLASHBUNDLE_LOG_LEVEL", "INFO")).upper()

        self.validate()

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "FlashbundleConfig":
        """
        Load configuration from the environment, reading a `.env` file first.

        Variables already set in the environment take precedence over the file.
        """
        load_dotenv(env_file)
        config = cls()
        logger.info(
            f"Configuration loaded for {len(config.relay_urls)} relays "
            f"(signing: {config.signing_key is not None})"
        )
        return config

    def validate(self) -> None:
        """Raise ValueError for unusable settings."""
        if not self.relay_urls:
            raise ValueError("At least one relay URL must be configured")
        if self.poll_interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {self.poll_interval}")
        if self.request_timeout <= 0 or self.connect_timeout <= 0:
            raise ValueError("HTTP timeouts must be positive")
        if self.connection_limit <= 0:
            raise ValueError("Connection limit must be positive")

    def get_signer(self) -> LocalAccount:
        """
        Searcher identity built from the configured key.

        Raises:
            ValueError: If no signing key is configured
        """
        if not self.signing_key:
            raise ValueError("FLASHBUNDLE_SIGNING_KEY is not configured")
        return Account.from_key(self.signing_key)

    def configure_logging(self) -> None:
        """Apply the configured log level to the flashbundle loggers."""
        configure_logging(self.log_level)

    def create_session(self) -> aiohttp.ClientSession:
        """Create an HTTP session with the configured limits."""
        return create_session(
            request_timeout=self.request_timeout,
            connect_timeout=self.connect_timeout,
            connection_limit=self.connection_limit
        )

    def __repr__(self) -> str:
        return (
            f"FlashbundleConfig(relay_urls={self.relay_urls!r}, "
            f"simulation_relay_url={self.simulation_relay_url!r}, "
            f"poll_interval={self.poll_interval})"
        )


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

async def create_middleware(
    provider: BlockSource,
    config: Optional[FlashbundleConfig] = None
) -> FlashbotsMiddleware:
    """
    Create a single-relay middleware for the first configured relay.

    Args:
        provider: Chain block source
        config: Configuration; loaded from the environment if omitted

    Returns:
        Middleware sharing one HTTP session with its simulation relay
    """
    config = config or FlashbundleConfig.from_env()
    signer = config.get_signer()
    middleware = FlashbotsMiddleware(
        provider,
        config.relay_urls[0],
        signer,
        session=config.create_session(),
        poll_interval=config.poll_interval,
        close_session=True
    )
    if config.simulation_relay_url:
        middleware.set_simulation_relay(config.simulation_relay_url)
    return middleware


async def create_broadcaster(
    provider: BlockSource,
    config: Optional[FlashbundleConfig] = None
) -> BroadcasterMiddleware:
    """
    Create a broadcaster for every configured relay.

    Args:
        provider: Chain block source
        config: Configuration; loaded from the environment if omitted

    Returns:
        Broadcaster sharing one HTTP session across relays
    """
    config = config or FlashbundleConfig.from_env()
    signer = config.get_signer()
    return BroadcasterMiddleware(
        provider,
        config.relay_urls,
        signer,
        simulation_relay_url=config.simulation_relay_url,
        session=config.create_session(),
        poll_interval=config.poll_interval,
        close_session=True
    )
