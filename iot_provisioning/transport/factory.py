"""Transport factory — selects a device registration transport by name.

The factory maintains a registry of known transports. Built-in
transports are registered lazily on first use; additional transports
(or test doubles) are plugged in with ``register_transport``.

Usage::

    from iot_provisioning.transport.factory import get_transport

    transport = get_transport("http", config)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from iot_provisioning.core.config import ProvisioningConfig
from iot_provisioning.core.exceptions import ArgumentError

if TYPE_CHECKING:
    from collections.abc import Callable

    from iot_provisioning.transport.base import ProvisioningTransport

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Transport name constants
# ---------------------------------------------------------------------------

HTTP = "http"

# ---------------------------------------------------------------------------
# Lazy-import transport registry
# ---------------------------------------------------------------------------

_TRANSPORT_REGISTRY: dict[str, Callable[[], type[ProvisioningTransport]]] = {}


def _register_builtin_transports() -> None:
    def _http() -> type[ProvisioningTransport]:
        from iot_provisioning.transport.http import HttpProvisioningTransport

        return HttpProvisioningTransport

    _TRANSPORT_REGISTRY[HTTP] = _http


def _ensure_registry() -> None:
    """Initialise the transport registry once (idempotent)."""
    if not _TRANSPORT_REGISTRY:
        _register_builtin_transports()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def register_transport(
    name: str,
    loader: Callable[[], type[ProvisioningTransport]],
) -> None:
    """Register a custom transport.

    Args:
        name: Transport name (e.g. ``"mqtt"``).
        loader: A zero-argument callable that returns the transport class.

    Raises:
        ArgumentError: If the name is empty.
    """
    if not name:
        msg = "Transport name must be non-empty"
        raise ArgumentError(msg)
    _ensure_registry()
    _TRANSPORT_REGISTRY[name] = loader
    logger.debug("Registered transport: %s", name)


def get_transport(
    name: str = HTTP,
    config: ProvisioningConfig | None = None,
) -> ProvisioningTransport:
    """Create and return a transport instance.

    Args:
        name: Transport identifier (e.g. ``"http"``).
        config: Optional ``ProvisioningConfig``; defaults are used if ``None``.

    Raises:
        ArgumentError: If the named transport is not registered.
    """
    _ensure_registry()

    loader = _TRANSPORT_REGISTRY.get(name)
    if loader is None:
        available = ", ".join(sorted(_TRANSPORT_REGISTRY))
        msg = f"Unknown transport: {name!r}. Available: {available}"
        raise ArgumentError(msg)

    transport_cls = loader()
    logger.info("Creating provisioning transport: %s", name)
    return transport_cls(config or ProvisioningConfig())


def list_transports() -> list[str]:
    """Return the names of all registered transports."""
    _ensure_registry()
    return sorted(_TRANSPORT_REGISTRY)
