"""
Federation — the set of coordinators a client can reach.
Resolves a coordinator alias to its base address for the active network.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, TYPE_CHECKING
import logging

from federation.api_client import ApiClient
from federation.errors import UnknownCoordinator

if TYPE_CHECKING:
    from config import FederationConfig

logger = logging.getLogger(__name__)


@dataclass
class Coordinator:
    short_alias: str
    url: str
    network: str = "mainnet"
    selfhosted_url: Optional[str] = None
    enabled: bool = True

    def get_base_url(self) -> str:
        # A self-hosted client proxies every coordinator under its own host
        if self.selfhosted_url:
            return f"{self.selfhosted_url.rstrip('/')}/{self.network}/{self.short_alias}"
        return self.url


class Federation:
    """Coordinator registry plus the shared API client."""

    def __init__(self, config: "FederationConfig", api: Optional[ApiClient] = None):
        self.network = config.network
        self.selfhosted_url = config.selfhosted_url
        self.api = api or ApiClient()
        self._coordinators: Dict[str, Coordinator] = {}
        for coordinator_config in config.coordinators:
            self.add_coordinator(
                coordinator_config.short_alias,
                coordinator_config.url_for(self.network),
            )

    def add_coordinator(self, short_alias: str, url: str) -> Coordinator:
        """Register (or re-point) a coordinator. Returns the registered entry."""
        coordinator = Coordinator(
            short_alias=short_alias,
            url=url,
            network=self.network,
            selfhosted_url=self.selfhosted_url,
        )
        if short_alias not in self._coordinators:
            logger.info(f"[FED] Added coordinator {short_alias} ({coordinator.get_base_url()})")
        self._coordinators[short_alias] = coordinator
        return coordinator

    def get_coordinator(self, short_alias: str) -> Optional[Coordinator]:
        return self._coordinators.get(short_alias)

    def resolve_coordinator(self, short_alias: str) -> Coordinator:
        """Like get_coordinator, but an unknown or disabled alias is an error."""
        coordinator = self._coordinators.get(short_alias)
        if coordinator is None or not coordinator.enabled:
            raise UnknownCoordinator(short_alias)
        return coordinator

    def disable_coordinator(self, short_alias: str):
        coordinator = self._coordinators.get(short_alias)
        if coordinator:
            coordinator.enabled = False
            logger.info(f"[FED] Disabled coordinator {short_alias}")

    @property
    def sorted_coordinators(self) -> List[str]:
        return sorted(a for a, c in self._coordinators.items() if c.enabled)

    async def close(self):
        await self.api.close()
