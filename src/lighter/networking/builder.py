"""Client construction for the Lighter HTTP API.

Misconfiguration is reported through the returned :class:`Result`; the
builder never raises configuration errors to its caller.
"""

from __future__ import annotations

import logging
from typing import Any

from .client import Client
from .config import ClientConfiguration
from .errors import ClientConfigurationError, EmptyEndpointError
from .options import Option
from .transport import TransportFactory
from .types import Err, Ok, Result

logger = logging.getLogger(__name__)


class ClientBuilder:
    """Collects options and builds a :class:`Client`.

    Options are applied in the order they were added. A builder is not
    thread-safe; callers must serialize their own build calls.
    """

    def __init__(
        self,
        endpoint: str,
        *options: Option,
        factory: TransportFactory | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._options: list[Option] = list(options)
        self._factory = factory or TransportFactory()

    def add(self, *options: Option) -> ClientBuilder:
        """Append options and return the builder for chaining."""
        self._options.extend(options)
        return self

    def _meta(self, applied: int, **extra: Any) -> dict[str, Any]:
        meta: dict[str, Any] = {
            "endpoint": self._endpoint,
            "options": len(self._options),
            "applied": applied,
        }
        meta.update(extra)
        return meta

    @staticmethod
    def _discard(config: ClientConfiguration) -> None:
        if config.transport is not None and not config.transport_supplied:
            config.transport.close()

    def build(self) -> Result[Client, ClientConfigurationError]:
        """Validate the endpoint, apply options and return the client.

        Returns:
            ``Ok`` with the client, or ``Err`` with the configuration error.
            ``meta`` records the endpoint, the number of options and how
            many were applied.
        """
        if not self._endpoint:
            return Err(
                EmptyEndpointError("endpoint must not be empty"),
                meta=self._meta(0),
            )

        config = ClientConfiguration(endpoint=self._endpoint)
        applied = 0
        for option in self._options:
            try:
                option(config, self._factory)
            except ClientConfigurationError as exc:
                logger.warning(
                    "option %s failed for %s: %s", option.name, self._endpoint, exc
                )
                self._discard(config)
                return Err(exc, meta=self._meta(applied, failed_option=option.name))
            except Exception:
                self._discard(config)
                raise
            applied += 1

        try:
            settings = self._factory.apply(config)
        except ClientConfigurationError as exc:
            logger.warning("transport setup failed for %s: %s", self._endpoint, exc)
            self._discard(config)
            return Err(exc, meta=self._meta(applied))

        return Ok(Client(config, settings), meta=self._meta(applied))


def new_client(
    endpoint: str, *options: Option
) -> Result[Client, ClientConfigurationError]:
    """Build a client for ``endpoint`` with ``options`` applied in order."""
    return ClientBuilder(endpoint, *options).build()
