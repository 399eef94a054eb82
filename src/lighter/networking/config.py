"""Configuration models for the Lighter HTTP client builder."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, MutableMapping

import requests
from requests.structures import CaseInsensitiveDict

from .errors import FrozenConfigurationError, InvalidTransportSettingError

DEFAULT_DIAL_TIMEOUT_SECONDS = 10.0
DEFAULT_KEEP_ALIVE_SECONDS = 60.0
DEFAULT_MAX_CONNS_PER_HOST = 1000
DEFAULT_MAX_IDLE_CONNS_PER_HOST = 100
DEFAULT_IDLE_CONN_TIMEOUT_SECONDS = 10.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30.0


class ProxyMode(str, Enum):
    """How outbound connections pick a proxy."""

    NONE = "none"
    FIXED = "fixed"
    ENVIRONMENT = "environment"


def _require_positive(name: str, value: float | None) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidTransportSettingError(
            f"{name} must be a number, got {value!r}"
        )
    if value <= 0:
        raise InvalidTransportSettingError(f"{name} must be > 0 when provided")


@dataclass(frozen=True)
class DialSettings:
    """The single strategy used to open new connections."""

    timeout_seconds: float = DEFAULT_DIAL_TIMEOUT_SECONDS
    keep_alive_seconds: float = DEFAULT_KEEP_ALIVE_SECONDS
    local_address: str | None = None

    def __post_init__(self) -> None:
        _require_positive("timeout_seconds", self.timeout_seconds)
        _require_positive("keep_alive_seconds", self.keep_alive_seconds)


@dataclass(frozen=True)
class TransportSettings:
    """Transport policy for a client.

    ``None`` marks a field as unset; :meth:`with_defaults` fills unset
    fields from the module defaults. Dialing is one :class:`DialSettings`
    value so that replacing it drops every earlier dial customization.
    """

    proxy_mode: ProxyMode | None = None
    proxy_url: str | None = None
    dial: DialSettings | None = None
    verify_tls: bool | None = None
    max_conns_per_host: int | None = None
    max_idle_conns_per_host: int | None = None
    idle_conn_timeout_seconds: float | None = None
    request_timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.proxy_mode is ProxyMode.FIXED and not self.proxy_url:
            raise InvalidTransportSettingError(
                "proxy_url is required when proxy_mode is fixed"
            )
        if self.proxy_mode is not ProxyMode.FIXED and self.proxy_url:
            raise InvalidTransportSettingError(
                "proxy_url is only valid when proxy_mode is fixed"
            )
        _require_positive("max_conns_per_host", self.max_conns_per_host)
        _require_positive("max_idle_conns_per_host", self.max_idle_conns_per_host)
        _require_positive(
            "idle_conn_timeout_seconds", self.idle_conn_timeout_seconds
        )
        _require_positive("request_timeout_seconds", self.request_timeout_seconds)
        if (
            self.max_conns_per_host is not None
            and self.max_idle_conns_per_host is not None
            and self.max_idle_conns_per_host > self.max_conns_per_host
        ):
            raise InvalidTransportSettingError(
                "max_idle_conns_per_host must not exceed max_conns_per_host"
            )

    def with_defaults(self) -> TransportSettings:
        """Return a copy with every unset field populated."""
        return TransportSettings(
            proxy_mode=(
                ProxyMode.ENVIRONMENT
                if self.proxy_mode is None
                else self.proxy_mode
            ),
            proxy_url=self.proxy_url,
            dial=self.dial if self.dial is not None else DialSettings(),
            verify_tls=True if self.verify_tls is None else self.verify_tls,
            max_conns_per_host=(
                self.max_conns_per_host
                if self.max_conns_per_host is not None
                else max(
                    DEFAULT_MAX_CONNS_PER_HOST,
                    self.max_idle_conns_per_host or 0,
                )
            ),
            max_idle_conns_per_host=(
                self.max_idle_conns_per_host
                if self.max_idle_conns_per_host is not None
                else min(
                    DEFAULT_MAX_IDLE_CONNS_PER_HOST,
                    self.max_conns_per_host or DEFAULT_MAX_IDLE_CONNS_PER_HOST,
                )
            ),
            idle_conn_timeout_seconds=(
                self.idle_conn_timeout_seconds
                if self.idle_conn_timeout_seconds is not None
                else DEFAULT_IDLE_CONN_TIMEOUT_SECONDS
            ),
            request_timeout_seconds=(
                self.request_timeout_seconds
                if self.request_timeout_seconds is not None
                else DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
        )

    def requests_pooling(self) -> bool:
        """Return True when dial or pool fields were set explicitly."""
        return any(
            getattr(self, name) is not None
            for name in (
                "dial",
                "max_conns_per_host",
                "max_idle_conns_per_host",
                "idle_conn_timeout_seconds",
            )
        )


@dataclass
class ClientConfiguration:
    """Accumulated client state while options are applied.

    Options mutate it in call order; :meth:`freeze` makes it read-only once
    the builder hands the client back. Not safe for concurrent mutation.
    """

    endpoint: str
    default_headers: MutableMapping[str, str] = field(
        default_factory=CaseInsensitiveDict
    )
    protection_enabled: bool = True
    channel_name: str = ""
    transport_settings: TransportSettings = field(
        default_factory=TransportSettings
    )
    transport: requests.Session | None = None
    transport_supplied: bool = False
    frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if getattr(self, "frozen", False):
            raise FrozenConfigurationError(
                f"cannot set {name!r}: configuration is frozen"
            )
        super().__setattr__(name, value)

    def merge_headers(self, headers: Mapping[str, str]) -> None:
        """Overwrite or add headers, keeping keys absent from ``headers``."""
        if self.frozen:
            raise FrozenConfigurationError(
                "cannot merge headers: configuration is frozen"
            )
        for key, value in headers.items():
            self.default_headers[key] = value

    def update_transport_settings(self, **changes: Any) -> TransportSettings:
        """Replace transport settings fields, validating the result."""
        known = {item.name for item in fields(TransportSettings)}
        unknown = set(changes) - known
        if unknown:
            raise TypeError(f"unknown transport settings: {sorted(unknown)}")
        self.transport_settings = replace(self.transport_settings, **changes)
        return self.transport_settings

    def freeze(self) -> None:
        """Make the configuration and its headers read-only."""
        if self.frozen:
            return
        # Freeze a copy so later edits to the working dict cannot leak in.
        headers = MappingProxyType(CaseInsensitiveDict(self.default_headers))
        object.__setattr__(self, "default_headers", headers)
        object.__setattr__(self, "frozen", True)
