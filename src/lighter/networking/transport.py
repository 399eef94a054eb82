"""Pooled transport creation for the Lighter HTTP client.

Every client owns its own :class:`requests.Session`; nothing here is shared
between clients. :class:`TransportFactory` is the only place that writes
dial, pool, proxy and TLS settings onto a session.
"""

from __future__ import annotations

import ipaddress
import logging
import socket
import threading
from time import monotonic
from typing import Any, Callable, Mapping
from urllib.parse import urlsplit

import requests
from requests.adapters import DEFAULT_POOLBLOCK, HTTPAdapter
from requests.utils import get_environ_proxies, select_proxy
from urllib3.connection import HTTPConnection
from urllib3.util import parse_url

from .config import ClientConfiguration, ProxyMode, TransportSettings
from .errors import (
    InvalidLocalAddressError,
    InvalidProxyURLError,
    UnsupportedTransportError,
)

logger = logging.getLogger(__name__)

PROXY_SCHEMES = frozenset(
    {"http", "https", "socks4", "socks4a", "socks5", "socks5h"}
)


def parse_proxy_url(raw: str) -> str:
    """Validate a proxy URL and return it stripped of whitespace."""
    if not isinstance(raw, str):
        raise InvalidProxyURLError(f"proxy URL must be a string, got {raw!r}")
    candidate = raw.strip()
    try:
        parts = urlsplit(candidate)
        parts.port  # raises ValueError on a malformed port
    except ValueError as exc:
        raise InvalidProxyURLError(f"invalid proxy URL {raw!r}: {exc}") from exc
    if parts.scheme.lower() not in PROXY_SCHEMES:
        raise InvalidProxyURLError(
            f"invalid proxy URL {raw!r}: unsupported scheme {parts.scheme!r}"
        )
    if not parts.hostname:
        raise InvalidProxyURLError(f"invalid proxy URL {raw!r}: missing host")
    return candidate


def parse_local_address(raw: str) -> str:
    """Validate a local bind IP literal (no port) and normalize it."""
    if not isinstance(raw, str):
        raise InvalidLocalAddressError(
            f"local address must be a string, got {raw!r}"
        )
    try:
        return str(ipaddress.ip_address(raw.strip()))
    except ValueError as exc:
        raise InvalidLocalAddressError(
            f"invalid local address {raw!r}: {exc}"
        ) from exc


def keepalive_socket_options(interval_seconds: float) -> list[tuple[int, int, int]]:
    """Return urllib3 socket options enabling TCP keep-alive probes."""
    options = list(HTTPConnection.default_socket_options)
    options.append((socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1))
    seconds = max(1, int(interval_seconds))
    for name in ("TCP_KEEPIDLE", "TCP_KEEPINTVL"):
        if hasattr(socket, name):
            options.append((socket.IPPROTO_TCP, getattr(socket, name), seconds))
    return options


def resolve_proxy(session: requests.Session, url: str) -> str | None:
    """Return the proxy a request to ``url`` through ``session`` would use."""
    proxies: dict[str, str] = {}
    if session.trust_env:
        proxies.update(get_environ_proxies(url, no_proxy=None))
    for key, value in session.proxies.items():
        proxies.setdefault(key, value)
    return select_proxy(url, proxies)


class PooledHTTPAdapter(HTTPAdapter):
    """HTTP adapter with per-host connection caps and idle eviction.

    Idle connections retained per host are bounded by the urllib3 pool size;
    connections in use per host are bounded by a semaphore. All pools,
    including proxy pools, dial from the configured local address with TCP
    keep-alive enabled.

    A per-host slot is held from send until the response releases its
    connection, so unread streamed bodies count against the cap.
    """

    def __init__(self, settings: TransportSettings | None = None) -> None:
        self._settings = (settings or TransportSettings()).with_defaults()
        self._lock = threading.Lock()
        self._host_slots: dict[str, threading.BoundedSemaphore] = {}
        self._last_used: float | None = None
        super().__init__(
            pool_maxsize=self._settings.max_idle_conns_per_host,
            pool_block=False,
        )

    @property
    def settings(self) -> TransportSettings:
        return self._settings

    def _dial_kwargs(self) -> dict[str, Any]:
        dial = self._settings.dial
        assert dial is not None
        kwargs: dict[str, Any] = {
            "socket_options": keepalive_socket_options(dial.keep_alive_seconds)
        }
        if dial.local_address:
            kwargs["source_address"] = (dial.local_address, 0)
        return kwargs

    def init_poolmanager(
        self,
        connections: int,
        maxsize: int,
        block: bool = DEFAULT_POOLBLOCK,
        **pool_kwargs: Any,
    ) -> None:
        pool_kwargs.update(self._dial_kwargs())
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)

    def proxy_manager_for(self, proxy: str, **proxy_kwargs: Any) -> Any:
        proxy_kwargs.update(self._dial_kwargs())
        return super().proxy_manager_for(proxy, **proxy_kwargs)

    def _clear_pools(self) -> None:
        self.poolmanager.clear()
        for manager in self.proxy_manager.values():
            manager.clear()

    def configure(self, settings: TransportSettings) -> None:
        """Rebuild pools so new connections follow ``settings``."""
        settings = settings.with_defaults()
        with self._lock:
            self._settings = settings
            self._host_slots.clear()
            self._clear_pools()
            self.proxy_manager.clear()
            self._pool_maxsize = settings.max_idle_conns_per_host
            self.init_poolmanager(
                self._pool_connections,
                self._pool_maxsize,
                block=self._pool_block,
            )

    def _slot_for(self, url: str) -> threading.BoundedSemaphore:
        parsed = parse_url(url)
        key = f"{parsed.scheme}://{parsed.host}:{parsed.port}"
        with self._lock:
            slot = self._host_slots.get(key)
            if slot is None:
                assert self._settings.max_conns_per_host is not None
                slot = threading.BoundedSemaphore(
                    self._settings.max_conns_per_host
                )
                self._host_slots[key] = slot
            return slot

    def _evict_idle_connections(self) -> None:
        now = monotonic()
        with self._lock:
            if self._last_used is None:
                return
            idle_for = now - self._last_used
            assert self._settings.idle_conn_timeout_seconds is not None
            if idle_for > self._settings.idle_conn_timeout_seconds:
                logger.debug(
                    "evicting idle connections after %.1fs", idle_for
                )
                self._clear_pools()

    def _touch(self) -> None:
        now = monotonic()
        with self._lock:
            self._last_used = now

    def send(
        self,
        request: requests.PreparedRequest,
        stream: bool = False,
        timeout: Any = None,
        verify: bool | str = True,
        cert: Any = None,
        proxies: Mapping[str, str] | None = None,
    ) -> requests.Response:
        if timeout is None:
            assert self._settings.dial is not None
            timeout = (
                self._settings.dial.timeout_seconds,
                self._settings.request_timeout_seconds,
            )
        if self._settings.verify_tls is False:
            # Session.merge_environment_settings may swap in REQUESTS_CA_BUNDLE.
            verify = False
        self._evict_idle_connections()
        slot = self._slot_for(request.url or "")
        slot.acquire()
        try:
            response = super().send(
                request,
                stream=stream,
                timeout=timeout,
                verify=verify,
                cert=cert,
                proxies=proxies,
            )
        except BaseException:
            slot.release()
            raise
        finally:
            self._touch()
        _hold_slot_until_released(response, slot)
        return response


def _hold_slot_until_released(
    response: requests.Response, slot: threading.BoundedSemaphore
) -> None:
    """Release ``slot`` once the response gives its connection back."""
    raw = getattr(response, "raw", None)
    release_conn = getattr(raw, "release_conn", None)
    if release_conn is None or getattr(raw, "connection", None) is None:
        slot.release()
        return

    lock = threading.Lock()
    held = [True]

    def _release_conn() -> None:
        try:
            release_conn()
        finally:
            with lock:
                if held[0]:
                    held[0] = False
                    slot.release()

    raw.release_conn = _release_conn


def _pooled_adapters(session: requests.Session) -> list[PooledHTTPAdapter]:
    seen: dict[int, PooledHTTPAdapter] = {}
    for adapter in session.adapters.values():
        if isinstance(adapter, PooledHTTPAdapter):
            seen.setdefault(id(adapter), adapter)
    return list(seen.values())


def _install_proxy(session: requests.Session, settings: TransportSettings) -> None:
    if settings.proxy_mode is ProxyMode.FIXED:
        assert settings.proxy_url is not None
        session.proxies = {"http": settings.proxy_url, "https": settings.proxy_url}
        session.trust_env = False
    elif settings.proxy_mode is ProxyMode.NONE:
        session.proxies = {}
        session.trust_env = False
    else:
        session.proxies = {}
        session.trust_env = True


class TransportFactory:
    """Creates, at most once per configuration, the session a client uses."""

    def __init__(
        self,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self._session_factory = session_factory

    def ensure_transport(self, config: ClientConfiguration) -> requests.Session:
        """Return the configuration's session, creating it if missing."""
        if config.transport is None:
            session = self._session_factory()
            adapter = PooledHTTPAdapter()
            session.mount("https://", adapter)
            session.mount("http://", adapter)
            config.transport = session
            logger.debug("created transport for %s", config.endpoint)
        return config.transport

    def apply(self, config: ClientConfiguration) -> TransportSettings:
        """Write the configuration's transport settings onto its session.

        Owned sessions receive every field, with defaults for unset ones.
        Caller-supplied sessions only receive fields that were set
        explicitly.
        """
        session = self.ensure_transport(config)
        requested = config.transport_settings
        settings = requested.with_defaults()
        supplied = config.transport_supplied

        adapters = _pooled_adapters(session)
        if adapters:
            for adapter in adapters:
                adapter.configure(settings)
        elif requested.requests_pooling():
            raise UnsupportedTransportError(
                "dial and pool settings need a session with a "
                "PooledHTTPAdapter mounted"
            )

        if not supplied or requested.proxy_mode is not None:
            _install_proxy(session, settings)
        if not supplied or requested.verify_tls is not None:
            session.verify = bool(settings.verify_tls)
            if not settings.verify_tls:
                logger.warning(
                    "TLS certificate verification disabled for %s",
                    config.endpoint,
                )
        return settings
