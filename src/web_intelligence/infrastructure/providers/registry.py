"""
Provider Registry - adapters keyed by name, in declaration order.

Populated once at container start-up, then frozen. After ``freeze()`` the
registry is read-only and shared by every concurrent request.

Usage:
    registry = ProviderRegistry()
    registry.register(SerperAdapter(api_key))
    registry.register(LinkupAdapter(api_key))
    registry.freeze()

    registry.capabilities()   # declaration order, used by the selector
    registry.get("serper")
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from web_intelligence.shared.exceptions import ConfigurationError, InvalidParameterError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from web_intelligence.domain.entities import ProviderCapability

    from .base import BaseProviderAdapter

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Ordered, freezable map of provider name to adapter."""

    def __init__(self) -> None:
        self._adapters: dict[str, BaseProviderAdapter] = {}
        self._frozen = False

    def register(self, adapter: BaseProviderAdapter) -> None:
        if self._frozen:
            raise ConfigurationError(f"Provider registry is frozen; cannot register '{adapter.name}'")
        if adapter.name in self._adapters:
            raise ConfigurationError(f"Provider '{adapter.name}' is already registered")
        self._adapters[adapter.name] = adapter
        logger.info(f"Registered provider: {adapter.name} ({adapter.capability.kind.value})")

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> BaseProviderAdapter:
        try:
            return self._adapters[name]
        except KeyError:
            raise InvalidParameterError(
                "provider", name, " | ".join(self._adapters) or "a registered provider"
            ) from None

    def capabilities(self) -> tuple[ProviderCapability, ...]:
        return tuple(adapter.capability for adapter in self._adapters.values())

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._adapters)

    def __contains__(self, name: object) -> bool:
        return name in self._adapters

    def __iter__(self) -> Iterator[BaseProviderAdapter]:
        return iter(self._adapters.values())

    def __len__(self) -> int:
        return len(self._adapters)

    async def aclose(self) -> None:
        """Close every adapter's HTTP client."""
        await asyncio.gather(*(adapter.aclose() for adapter in self._adapters.values()))
