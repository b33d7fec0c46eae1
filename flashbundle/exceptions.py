"""
Exception hierarchy for relay communication and bundle tracking.

Every error raised by this package derives from FlashbundleError so callers can
catch the whole family at once. Relay call failures share the RelayError base;
bundle validation and inclusion outcomes sit beside it.

File: flashbundle/exceptions.py
"""

from typing import Any, Optional


class FlashbundleError(Exception):
    """Base exception for all flashbundle errors."""
    pass


# =============================================================================
# BUNDLE ERRORS
# =============================================================================

class ParameterError(FlashbundleError):
    """
    Raised when a bundle is missing fields required for the requested call.

    For simulation, `block`, `simulation_block` and `simulation_timestamp`
    must be set. For submission, at least one transaction and `block` must
    be set. `min_timestamp` and `max_timestamp` must both be set or unset.
    """
    pass


class BundleNotIncludedError(FlashbundleError):
    """Raised when the target block was mined without the bundle."""

    def __init__(self, block_number: int, missing_transactions: Optional[list] = None):
        super().__init__(f"Bundle was not included in target block {block_number}")
        self.block_number = block_number
        self.missing_transactions = missing_transactions or []


class ProviderError(FlashbundleError):
    """Raised when the chain provider fails outside of inclusion polling."""
    pass


# =============================================================================
# RELAY ERRORS
# =============================================================================

class RelayError(FlashbundleError):
    """Base exception for failed relay requests."""

    def __init__(self, message: str, relay_url: Optional[str] = None):
        super().__init__(message)
        self.relay_url = relay_url


class TransportError(RelayError):
    """The relay could not be reached or answered with a server error."""

    def __init__(
        self,
        message: str,
        relay_url: Optional[str] = None,
        status: Optional[int] = None
    ):
        super().__init__(message, relay_url)
        self.status = status


class RelayClientError(RelayError):
    """The relay rejected the request with a 4xx status."""

    def __init__(self, text: str, status: int, relay_url: Optional[str] = None):
        super().__init__(f"Client error: {text}", relay_url)
        self.text = text
        self.status = status


class RelayProtocolError(RelayError):
    """The relay answered with a JSON-RPC error object."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
        relay_url: Optional[str] = None
    ):
        super().__init__(f"(code: {code}, message: {message}, data: {data})", relay_url)
        self.code = code
        self.message = message
        self.data = data


class ResponseDecodeError(RelayError):
    """The relay response could not be decoded."""

    def __init__(self, error: str, text: str, relay_url: Optional[str] = None):
        super().__init__(f"Deserialization error: {error}. Response: {text}", relay_url)
        self.text = text


class EmptyResultError(RelayError):
    """The relay returned a null result for a call that must carry data."""

    def __init__(self, method: str, relay_url: Optional[str] = None):
        super().__init__(f"Relay returned no result for {method}", relay_url)
        self.method = method


class SigningError(RelayError):
    """The configured signer could not sign the request body."""
    pass


__all__ = [
    'FlashbundleError',
    'ParameterError',
    'BundleNotIncludedError',
    'ProviderError',
    'RelayError',
    'TransportError',
    'RelayClientError',
    'RelayProtocolError',
    'ResponseDecodeError',
    'EmptyResultError',
    'SigningError',
]
