"""Backend service port resolution for routes."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import PortResolutionError
from .index import ResourceIndex
from .models import Route

LOG = logging.getLogger(__name__)


def resolve_service_port(
    index: ResourceIndex,
    namespace: str,
    service_name: str,
    port_name: Optional[str] = None,
) -> int:
    """Look up a port of ``namespace/service_name``.

    With ``port_name`` the port of that name is returned, otherwise the
    first port of the service.
    """

    key = f"{namespace}/{service_name}"
    if not index.is_watched(namespace):
        raise PortResolutionError(f"informer not found for namespace: {namespace}")

    service = index.service(namespace, service_name)
    if service is None or not service.ports:
        raise PortResolutionError(f"could not find service ports for service '{key}'")

    if port_name:
        port = service.port_named(port_name)
        if port is None:
            raise PortResolutionError(
                f"could not find service port '{port_name}' on service '{key}'"
            )
        return port.port
    return service.ports[0].port


def route_service_port(index: ResourceIndex, route: Route) -> int:
    """Return the service port ``route`` sends traffic to."""

    LOG.debug("Finding port for route %s", route.key)
    if isinstance(route.target_port, int):
        port = route.target_port
    else:
        try:
            port = resolve_service_port(
                index, route.namespace, route.service_name, route.target_port
            )
        except PortResolutionError as exc:
            raise PortResolutionError(
                f"error while processing port for route {route.key}: {exc}"
            ) from exc
    LOG.debug("Port %s found for route %s", port, route.key)
    return port
