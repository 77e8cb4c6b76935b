"""Abstract interface for the agent pushing configs to the device."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict

from route_vs.store import LTMConfig


@dataclass(frozen=True)
class ConfigRequest:
    """Snapshot handed to the device agent at the end of a drain cycle.

    ``ltm_config`` and ``dns_config`` are deep copies; the worker keeps
    mutating the live store while the agent works on the request.
    """

    ltm_config: LTMConfig
    request_id: int
    dns_config: Dict[str, dict] = field(default_factory=dict)
    share_nodes: bool = False
    default_route_domain: int = 0


class DeviceAgent(ABC):
    """Base class for agents the controller posts configs to."""

    @abstractmethod
    def post_config(self, request: ConfigRequest) -> None:
        """Accept ``request`` for delivery; must not block the caller."""
