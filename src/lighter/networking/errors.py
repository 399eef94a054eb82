"""Error types raised while configuring a Lighter HTTP client."""

from __future__ import annotations


class ClientConfigurationError(Exception):
    """Base class for client misconfiguration."""


class EmptyEndpointError(ClientConfigurationError, ValueError):
    """The base endpoint URL was empty at build time."""


class InvalidProxyURLError(ClientConfigurationError, ValueError):
    """The proxy target could not be parsed."""


class InvalidLocalAddressError(ClientConfigurationError, ValueError):
    """The local bind address is not a valid IP address."""


class InvalidTransportSettingError(ClientConfigurationError, ValueError):
    """A timeout or pool limit is out of range."""


class UnsupportedTransportError(ClientConfigurationError, TypeError):
    """A caller-supplied session cannot carry the requested dial settings."""


class FrozenConfigurationError(ClientConfigurationError, AttributeError):
    """A configuration was modified after the client was built."""
