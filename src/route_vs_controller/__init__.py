"""Work-queue driven controller around the :mod:`route_vs` engine.

Watchers feed cluster objects into :meth:`Controller.observe`; a single
worker thread drains the rate-limited queue, dispatches each item by kind
and posts a snapshot to the device agent whenever the queue runs dry.
"""

from .controller import Controller  # noqa: F401
from .events import (  # noqa: F401
    ConfigMapEvent,
    EndpointsEvent,
    NamespaceEvent,
    RouteEvent,
    ServiceEvent,
)
from .options import ControllerSettings  # noqa: F401

__all__ = [
    "ConfigMapEvent",
    "Controller",
    "ControllerSettings",
    "EndpointsEvent",
    "NamespaceEvent",
    "RouteEvent",
    "ServiceEvent",
]
