"""Read-only lookup interface over the watched cluster resources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .models import Endpoints, Route, Service


class ResourceIndex(ABC):
    """Indexed view the synthesizer reads routes and services from.

    Lookups for a namespace that is not being watched behave as if the
    namespace were empty; :meth:`is_watched` lets callers tell the two apart.
    """

    @abstractmethod
    def is_watched(self, namespace: str) -> bool:
        """Return ``True`` while ``namespace`` has running informers."""

    @abstractmethod
    def routes(self, namespace: str) -> Sequence[Route]:
        """Return every route in ``namespace`` (unordered)."""

    @abstractmethod
    def service(self, namespace: str, name: str) -> Optional[Service]:
        """Return the named service or ``None``."""

    @abstractmethod
    def endpoints(self, namespace: str, name: str) -> Optional[Endpoints]:
        """Return the endpoints object of the named service or ``None``."""
