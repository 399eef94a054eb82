"""Built client handle for the Lighter HTTP API.

A :class:`Client` bundles a frozen :class:`ClientConfiguration` with the
session it configured. Request dispatch and signing live with the callers;
this handle only exposes what they need to issue requests.
"""

from __future__ import annotations

from types import TracebackType
from typing import Mapping

import requests

from .config import ClientConfiguration, TransportSettings
from .transport import resolve_proxy


class Client:
    """Immutable client handle.

    The session is safe to share across threads for issuing requests.
    Changing any setting requires building a new client.
    """

    __slots__ = ("_config", "_settings", "_session")

    def __init__(
        self, config: ClientConfiguration, settings: TransportSettings
    ) -> None:
        """Create a client from a finalized configuration.

        Args:
            config: Configuration whose transport has been materialized.
            settings: Transport settings with defaults applied.
        """
        if config.transport is None:
            raise ValueError("configuration has no transport")
        config.freeze()
        self._config = config
        self._settings = settings
        self._session = config.transport
        self._session.headers.update(self._config.default_headers)

    def __setattr__(self, name: str, value: object) -> None:
        if hasattr(self, "_session"):
            raise AttributeError(f"Client is immutable; cannot set {name!r}")
        object.__setattr__(self, name, value)

    def __repr__(self) -> str:
        return f"Client(endpoint={self.endpoint!r})"

    @property
    def endpoint(self) -> str:
        return self._config.endpoint

    @property
    def default_headers(self) -> Mapping[str, str]:
        return self._config.default_headers

    @property
    def protection_enabled(self) -> bool:
        return self._config.protection_enabled

    @property
    def channel_name(self) -> str:
        return self._config.channel_name

    @property
    def configuration(self) -> ClientConfiguration:
        return self._config

    @property
    def transport_settings(self) -> TransportSettings:
        return self._settings

    @property
    def session(self) -> requests.Session:
        return self._session

    @property
    def timeout(self) -> tuple[float, float]:
        """Return ``(dial timeout, request timeout)`` in seconds."""
        dial = self._settings.dial
        assert dial is not None
        assert self._settings.request_timeout_seconds is not None
        return (dial.timeout_seconds, self._settings.request_timeout_seconds)

    def resolve_proxy(self, url: str) -> str | None:
        """Return the proxy used for ``url``, or None for a direct connection."""
        return resolve_proxy(self._session, url)

    def close(self) -> None:
        """Close the session unless the caller supplied it."""
        if not self._config.transport_supplied:
            self._session.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
