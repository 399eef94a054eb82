"""Named configuration steps applied by :class:`ClientBuilder`.

Each option receives the in-progress :class:`ClientConfiguration` and the
builder's :class:`TransportFactory`. Options run in the order they are
given; options that touch dialing replace the whole dial strategy, so the
last one applied wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping

import requests

from .config import (
    DEFAULT_DIAL_TIMEOUT_SECONDS,
    DEFAULT_KEEP_ALIVE_SECONDS,
    ClientConfiguration,
    DialSettings,
    ProxyMode,
)
from .transport import TransportFactory, parse_local_address, parse_proxy_url

logger = logging.getLogger(__name__)

ApplyFn = Callable[[ClientConfiguration, TransportFactory], None]


@dataclass(frozen=True)
class Option:
    """A named, fallible configuration step."""

    name: str
    apply: ApplyFn

    def __call__(
        self, config: ClientConfiguration, factory: TransportFactory
    ) -> None:
        logger.debug("applying option %s to %s", self.name, config.endpoint)
        self.apply(config, factory)


def with_proxy(proxy_url: str) -> Option:
    """Route every request through ``proxy_url`` (HTTP or SOCKS).

    An empty string leaves the proxy policy unchanged. Environment proxy
    variables are ignored once a fixed proxy is installed.
    """

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        if proxy_url == "":
            return
        parsed = parse_proxy_url(proxy_url)
        factory.ensure_transport(config)
        config.update_transport_settings(
            proxy_mode=ProxyMode.FIXED, proxy_url=parsed
        )

    return Option("with_proxy", _apply)


def with_environment_proxy() -> Option:
    """Pick proxies from HTTP(S)_PROXY / NO_PROXY; this is the default."""

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        factory.ensure_transport(config)
        config.update_transport_settings(
            proxy_mode=ProxyMode.ENVIRONMENT, proxy_url=None
        )

    return Option("with_environment_proxy", _apply)


def without_proxy() -> Option:
    """Connect directly, ignoring environment proxy variables."""

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        factory.ensure_transport(config)
        config.update_transport_settings(proxy_mode=ProxyMode.NONE, proxy_url=None)

    return Option("without_proxy", _apply)


def with_local_addr(local_ip: str) -> Option:
    """Bind outgoing connections to ``local_ip`` on an ephemeral port.

    Replaces the current dial strategy, including any custom dial timeout,
    with one using the default dial timeout and keep-alive interval.
    An empty string leaves dialing unchanged.
    """

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        if local_ip == "":
            return
        address = parse_local_address(local_ip)
        factory.ensure_transport(config)
        config.update_transport_settings(
            dial=DialSettings(
                timeout_seconds=DEFAULT_DIAL_TIMEOUT_SECONDS,
                keep_alive_seconds=DEFAULT_KEEP_ALIVE_SECONDS,
                local_address=address,
            )
        )

    return Option("with_local_addr", _apply)


def with_dial_timeout(
    timeout_seconds: float,
    keep_alive_seconds: float = DEFAULT_KEEP_ALIVE_SECONDS,
) -> Option:
    """Replace the dial strategy with one using custom timings.

    Any previously configured local address is dropped.
    """

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        dial = DialSettings(
            timeout_seconds=timeout_seconds,
            keep_alive_seconds=keep_alive_seconds,
        )
        factory.ensure_transport(config)
        config.update_transport_settings(dial=dial)

    return Option("with_dial_timeout", _apply)


def with_pool_limits(
    max_conns_per_host: int | None = None,
    max_idle_conns_per_host: int | None = None,
    idle_conn_timeout_seconds: float | None = None,
) -> Option:
    """Override connection pool limits; ``None`` keeps the current value."""

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        current = config.transport_settings
        factory.ensure_transport(config)
        config.update_transport_settings(
            max_conns_per_host=(
                current.max_conns_per_host
                if max_conns_per_host is None
                else max_conns_per_host
            ),
            max_idle_conns_per_host=(
                current.max_idle_conns_per_host
                if max_idle_conns_per_host is None
                else max_idle_conns_per_host
            ),
            idle_conn_timeout_seconds=(
                current.idle_conn_timeout_seconds
                if idle_conn_timeout_seconds is None
                else idle_conn_timeout_seconds
            ),
        )

    return Option("with_pool_limits", _apply)


def with_timeout(seconds: float) -> Option:
    """Set the overall per-request timeout."""

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        factory.ensure_transport(config)
        config.update_transport_settings(request_timeout_seconds=seconds)

    return Option("with_timeout", _apply)


def with_insecure_skip_verify() -> Option:
    """Disable TLS certificate verification."""

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        factory.ensure_transport(config)
        config.update_transport_settings(verify_tls=False)

    return Option("with_insecure_skip_verify", _apply)


def with_session(session: requests.Session) -> Option:
    """Use a caller-built session instead of creating one.

    The session is never replaced; only explicitly requested settings are
    written onto it. A session created by an earlier option is closed.
    """

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        previous = config.transport
        if previous is not None and previous is not session:
            if not config.transport_supplied:
                previous.close()
        config.transport = session
        config.transport_supplied = True

    return Option("with_session", _apply)


def with_custom_headers(headers: Mapping[str, str]) -> Option:
    """Merge ``headers`` into the default headers sent with every request."""

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        config.merge_headers(headers)

    return Option("with_custom_headers", _apply)


def with_channel_name(name: str) -> Option:
    """Set the channel name carried by the client."""

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        config.channel_name = name

    return Option("with_channel_name", _apply)


def set_protection_flag(enabled: bool) -> Option:
    """Toggle fat-finger protection.

    The flag is not interpreted here; order-issuing code reads it from
    :attr:`Client.protection_enabled`.
    """

    def _apply(config: ClientConfiguration, factory: TransportFactory) -> None:
        config.protection_enabled = bool(enabled)

    return Option("set_protection_flag", _apply)
