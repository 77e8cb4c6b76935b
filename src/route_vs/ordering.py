"""Route ordering, de-duplication and virtual port derivation."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Sequence, Tuple

from .config import HTTP_PORT, HTTPS_PORT, VirtualPort
from .errors import DuplicateRouteConflict
from .models import Route

LOG = logging.getLogger(__name__)


def _sort_key(route: Route):
    # "" and "/" address the same root; the older route takes precedence.
    path = "/" if route.path in ("", "/") else route.path
    return (route.host, path, route.creation_timestamp, route.name)


def order_routes(routes: Iterable[Route]) -> List[Route]:
    """Sort ``routes`` by host, path and age.

    The route name is the final tie-break so that the order never depends
    on the order in which the cache returned the routes.
    """

    return sorted(routes, key=_sort_key)


def group_routes(
    route_group: str, routes: Iterable[Route]
) -> Tuple[List[Route], List[DuplicateRouteConflict]]:
    """Order ``routes`` and drop every later route sharing a host and path."""

    kept: Dict[Tuple[str, str], Route] = {}
    grouped: List[Route] = []
    conflicts: List[DuplicateRouteConflict] = []
    for route in order_routes(routes):
        owner = kept.get((route.host, route.path))
        if owner is not None:
            conflict = DuplicateRouteConflict(
                route_group=route_group,
                discarded=route.key,
                kept=owner.key,
                host=route.host,
                path=route.path,
            )
            LOG.warning("Discarding %s", conflict)
            conflicts.append(conflict)
            continue
        kept[(route.host, route.path)] = route
        grouped.append(route)
    return grouped, conflicts


def basic_virtual_ports() -> Sequence[VirtualPort]:
    return (HTTP_PORT, HTTPS_PORT)


def virtual_ports_for_routes(routes: Iterable[Route]) -> Sequence[VirtualPort]:
    if any(route.secure for route in routes):
        return basic_virtual_ports()
    return (HTTP_PORT,)


def routes_handle_http(routes: Iterable[Route]) -> bool:
    """Return ``True`` if at least one route accepts plain HTTP traffic."""

    for route in routes:
        if route.tls is None or route.tls.handles_http():
            return True
    return False
