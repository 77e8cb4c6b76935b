"""Work items consumed by the reconciliation worker.

Each cluster resource kind has its own event type; together they form the
closed :data:`WorkItem` union the controller dispatches on. ``key`` is the
identity the work queue coalesces on.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from route_vs.models import ConfigMap, Endpoints, Namespace, Route, Service

ROUTE = "Route"
SERVICE = "Service"
ENDPOINTS = "Endpoints"
CONFIGMAP = "ConfigMap"
NAMESPACE = "Namespace"

ItemKey = Tuple[str, str, str]


@dataclass(frozen=True, eq=False)
class RouteEvent:
    resource: Route
    deleted: bool = False

    @property
    def key(self) -> ItemKey:
        return (ROUTE, self.resource.namespace, self.resource.name)


@dataclass(frozen=True, eq=False)
class ServiceEvent:
    resource: Service
    deleted: bool = False

    @property
    def key(self) -> ItemKey:
        return (SERVICE, self.resource.namespace, self.resource.name)


@dataclass(frozen=True, eq=False)
class EndpointsEvent:
    resource: Endpoints
    deleted: bool = False

    @property
    def key(self) -> ItemKey:
        return (ENDPOINTS, self.resource.namespace, self.resource.name)


@dataclass(frozen=True, eq=False)
class ConfigMapEvent:
    resource: ConfigMap
    deleted: bool = False

    @property
    def key(self) -> ItemKey:
        return (CONFIGMAP, self.resource.namespace, self.resource.name)


@dataclass(frozen=True, eq=False)
class NamespaceEvent:
    """Signals that a namespace entered or left the controller's scope."""

    resource: Namespace
    deleted: bool = False

    @property
    def key(self) -> ItemKey:
        return (NAMESPACE, "", self.resource.name)


WorkItem = Union[RouteEvent, ServiceEvent, EndpointsEvent, ConfigMapEvent, NamespaceEvent]

_EVENT_TYPES = {
    Route: RouteEvent,
    Service: ServiceEvent,
    Endpoints: EndpointsEvent,
    ConfigMap: ConfigMapEvent,
    Namespace: NamespaceEvent,
}


def event_for(resource, deleted: bool = False) -> WorkItem:
    """Wrap ``resource`` into the work item of its kind."""

    try:
        event_type = _EVENT_TYPES[type(resource)]
    except KeyError:
        raise TypeError(f"Unsupported resource type: {type(resource)!r}") from None
    return event_type(resource, deleted)
