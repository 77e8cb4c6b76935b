"""Resource cache and per-namespace informer registry.

Watchers write every observed object into the :class:`ResourceCache`. A
namespace only becomes visible to the synthesizer once its informers are
started through the :class:`InformerRegistry`; stopping them hides the
namespace again without dropping the cached objects.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence, Set, Tuple

from route_vs.index import ResourceIndex
from route_vs.models import ConfigMap, Endpoints, Namespace, Route, Service

from .events import CONFIGMAP, ENDPOINTS, NAMESPACE, ROUTE, SERVICE

LOG = logging.getLogger(__name__)

_KINDS = {
    Route: ROUTE,
    Service: SERVICE,
    Endpoints: ENDPOINTS,
    ConfigMap: CONFIGMAP,
    Namespace: NAMESPACE,
}


def resource_kind(resource) -> str:
    try:
        return _KINDS[type(resource)]
    except KeyError:
        raise TypeError(f"Unsupported resource type: {type(resource)!r}") from None


def resource_namespace(resource) -> str:
    return "" if isinstance(resource, Namespace) else resource.namespace


class ResourceCache:
    """Thread-safe store of the last observed version of every object."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._objects: Dict[Tuple[str, str, str], object] = {}

    def upsert(self, resource) -> None:
        key = (resource_kind(resource), resource_namespace(resource), resource.name)
        with self._lock:
            self._objects[key] = resource

    def remove(self, resource) -> None:
        key = (resource_kind(resource), resource_namespace(resource), resource.name)
        with self._lock:
            self._objects.pop(key, None)

    def get(self, kind: str, namespace: str, name: str):
        with self._lock:
            return self._objects.get((kind, namespace, name))

    def list(self, kind: Optional[str] = None, namespace: Optional[str] = None) -> List[object]:
        with self._lock:
            return [
                obj
                for (obj_kind, obj_ns, _), obj in sorted(self._objects.items(), key=lambda i: i[0])
                if (kind is None or obj_kind == kind) and (namespace is None or obj_ns == namespace)
            ]


class NamespaceInformer:
    """Native-resource and extended-spec watch sources of one namespace."""

    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        self._running = threading.Event()

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        self._running.set()

    def stop(self) -> None:
        self._running.clear()


class InformerRegistry(ResourceIndex):
    """Namespaces in scope and their informers, guarded by one lock."""

    def __init__(self, cache: Optional[ResourceCache] = None) -> None:
        self.cache = cache or ResourceCache()
        self._lock = threading.Lock()
        self._informers: Dict[str, NamespaceInformer] = {}

    def start(self, namespace: str) -> bool:
        """Start ``namespace``'s informers; ``False`` if already running."""

        with self._lock:
            if namespace in self._informers:
                return False
            informer = NamespaceInformer(namespace)
            informer.start()
            self._informers[namespace] = informer
        LOG.debug("Started informers for namespace '%s'", namespace)
        return True

    def stop(self, namespace: str) -> bool:
        with self._lock:
            informer = self._informers.pop(namespace, None)
        if informer is None:
            return False
        informer.stop()
        LOG.debug("Stopped informers for namespace '%s'", namespace)
        return True

    def namespaces(self) -> Set[str]:
        with self._lock:
            return set(self._informers)

    def is_watched(self, namespace: str) -> bool:
        with self._lock:
            informer = self._informers.get(namespace)
        return informer is not None and informer.running

    # ------------------------------------------------------------------
    # ResourceIndex
    # ------------------------------------------------------------------
    def routes(self, namespace: str) -> Sequence[Route]:
        if not self.is_watched(namespace):
            LOG.error("Informer not found for namespace: %s", namespace)
            return []
        return self.cache.list(ROUTE, namespace)

    def service(self, namespace: str, name: str) -> Optional[Service]:
        if not self.is_watched(namespace):
            return None
        return self.cache.get(SERVICE, namespace, name)

    def endpoints(self, namespace: str, name: str) -> Optional[Endpoints]:
        if not self.is_watched(namespace):
            return None
        return self.cache.get(ENDPOINTS, namespace, name)

    def service_count(self) -> int:
        return sum(len(self.cache.list(SERVICE, ns)) for ns in self.namespaces())
