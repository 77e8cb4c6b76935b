"""Reconciliation worker.

A single worker pulls :data:`~route_vs_controller.events.WorkItem` objects
from the rate-limited queue and dispatches them by kind. Whenever the queue
drains with unflushed changes in the store, a snapshot is posted to the
device agent.
"""

from __future__ import annotations

import itertools
import logging
from typing import List, Optional

from route_vs.errors import RouteVSError, UnknownResourceKind
from route_vs.extended_spec import ExtendedSpecReconciler
from route_vs.members import build_member_strategy
from route_vs.models import SERVICE_TYPE_LOAD_BALANCER, ConfigMap, Namespace, Service
from route_vs.spec_document import EXTENDED_SPEC_KEY
from route_vs.store import ResourceStore
from route_vs.synthesizer import RouteGroupSynthesizer
from route_vs.tls import RouteTLSHandler, TLSHandler

from .agents import ConfigRequest, DeviceAgent
from .events import (
    CONFIGMAP,
    ConfigMapEvent,
    EndpointsEvent,
    NamespaceEvent,
    RouteEvent,
    ServiceEvent,
    WorkItem,
    event_for,
)
from .informers import InformerRegistry, resource_namespace
from .options import ControllerSettings
from .queue import RateLimitingQueue

LOG = logging.getLogger(__name__)


def affected_route_groups(service: Service) -> List[str]:
    return [service.namespace]


class Controller:
    """Owns the queue, the store and the namespace registry."""

    def __init__(
        self,
        settings: ControllerSettings,
        store: ResourceStore,
        informers: InformerRegistry,
        synthesizer: RouteGroupSynthesizer,
        reconciler: ExtendedSpecReconciler,
        agent: DeviceAgent,
        queue: Optional[RateLimitingQueue] = None,
    ) -> None:
        self.settings = settings
        self.store = store
        self.informers = informers
        self.synthesizer = synthesizer
        self.reconciler = reconciler
        self.queue = queue or RateLimitingQueue(
            settings.queue_base_delay, settings.queue_max_delay
        )
        self._agent = agent
        self._request_ids = itertools.count(1)
        self._initial_service_count = 0
        self._init_state = True

    @classmethod
    def build(
        cls,
        settings: ControllerSettings,
        agent: DeviceAgent,
        tls_handler: Optional[TLSHandler] = None,
    ) -> "Controller":
        store = ResourceStore()
        informers = InformerRegistry()
        members = build_member_strategy(
            settings.pool_member_type, informers, settings.node_addresses
        )
        synthesizer = RouteGroupSynthesizer(
            store,
            informers,
            members,
            tls_handler or RouteTLSHandler(settings.default_client_ssl),
        )
        reconciler = ExtendedSpecReconciler(store, synthesizer, settings.route_spec_configmap)
        return cls(settings, store, informers, synthesizer, reconciler, agent)

    @property
    def init_state(self) -> bool:
        return self._init_state

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------
    def observe(self, resource, deleted: bool = False) -> None:
        """Record an add/update/delete notification and enqueue its work item."""

        cache = self.informers.cache
        if deleted:
            cache.remove(resource)
        else:
            cache.upsert(resource)

        if isinstance(resource, Namespace):
            self.queue.add(event_for(resource, deleted))
            return
        if isinstance(resource, ConfigMap):
            if self.reconciler.is_global(resource):
                self.queue.add(event_for(resource, deleted))
                return
            if EXTENDED_SPEC_KEY not in resource.data:
                return

        namespace = resource_namespace(resource)
        if not self.informers.is_watched(namespace):
            LOG.debug("Ignoring %s from unwatched namespace '%s'", type(resource).__name__, namespace)
            return
        self.queue.add(event_for(resource, deleted))

    def start_namespace(self, namespace: str) -> bool:
        """Bring ``namespace`` into scope and replay its cached objects."""

        if not self.informers.start(namespace):
            return False
        for resource in self.informers.cache.list(namespace=namespace):
            if isinstance(resource, ConfigMap) and EXTENDED_SPEC_KEY not in resource.data:
                continue
            self.queue.add(event_for(resource))
        return True

    def stop_namespace(self, namespace: str) -> bool:
        return self.informers.stop(namespace)

    # ------------------------------------------------------------------
    # Start-up
    # ------------------------------------------------------------------
    def initialise(self) -> None:
        for namespace in self.settings.namespaces:
            self.start_namespace(namespace)
        self.set_initial_service_count(self.informers.service_count())
        self.initialise_extended_spec()

    def set_initial_service_count(self, count: int) -> None:
        self._initial_service_count = count
        self._init_state = count > 0

    def initialise_extended_spec(self) -> None:
        namespace, _, name = self.settings.route_spec_configmap.partition("/")
        configmap = self.informers.cache.get(CONFIGMAP, namespace, name)
        if configmap is None:
            LOG.error(
                "Unable to get extended route spec configmap %s",
                self.settings.route_spec_configmap,
            )
            return
        try:
            self.reconciler.process_configmap(configmap, initial=True)
        except RouteVSError as exc:
            LOG.error(
                "Unable to process extended route spec configmap %s: %s",
                self.settings.route_spec_configmap,
                exc,
            )

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------
    def run(self) -> None:
        LOG.debug("Starting route resource worker")
        self.initialise()
        while self.process_next_item():
            pass
        LOG.debug("Route resource worker stopped")

    def shutdown(self) -> None:
        self.queue.shutdown()

    def process_next_item(self, timeout: Optional[float] = None) -> bool:
        """Process one item; ``False`` once the queue is shut down."""

        item = self.queue.get(timeout=timeout)
        if item is None:
            return not self.queue.shutting_down
        self._handle_item(item)
        return True

    def drain(self, timeout: float = 0.0) -> int:
        """Process items until none becomes ready within ``timeout`` seconds."""

        processed = 0
        while True:
            item = self.queue.get(timeout=timeout)
            if item is None:
                return processed
            self._handle_item(item)
            processed += 1

    def _handle_item(self, item: WorkItem) -> None:
        LOG.debug("Processing key: %s", item.key)
        try:
            if self._defer_during_bulk_load(item):
                self.queue.add_rate_limited(item)
                return
            if self._process(item):
                self.queue.add_rate_limited(item)
            else:
                self.queue.forget(item)
        finally:
            self.queue.done(item)
        self._flush_if_drained()

    def _defer_during_bulk_load(self, item: WorkItem) -> bool:
        # Pool members must be known before any virtual server is built.
        if not self._init_state or isinstance(item, NamespaceEvent):
            return False
        if not isinstance(item, ServiceEvent):
            return True
        self._initial_service_count -= 1
        if self._initial_service_count <= 0:
            self._init_state = False
        return False

    def _process(self, item: WorkItem) -> bool:
        """Dispatch ``item``; return ``True`` if it should be retried."""

        try:
            self._dispatch(item)
        except RouteVSError as exc:
            LOG.error("Sync %s failed with %s", item.key, exc)
            return exc.retryable
        return False

    def _dispatch(self, item: WorkItem) -> None:
        if isinstance(item, RouteEvent):
            self._on_route(item)
        elif isinstance(item, ConfigMapEvent):
            self._on_configmap(item)
        elif isinstance(item, ServiceEvent):
            self._on_service(item)
        elif isinstance(item, EndpointsEvent):
            self._on_endpoints(item)
        elif isinstance(item, NamespaceEvent):
            self._on_namespace(item)
        else:
            raise UnknownResourceKind(f"Unknown resource kind: {type(item)!r}")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------
    def _on_route(self, event: RouteEvent) -> None:
        namespace = event.resource.namespace
        if not self.informers.is_watched(namespace):
            LOG.debug("Dropping route event for namespace '%s' out of scope", namespace)
            return
        # The synthesizer works out deletions itself from the remaining routes.
        result = self.synthesizer.process_routes(namespace)
        if result.published or result.deleted:
            LOG.debug(
                "RouteGroup %s: published=%s deleted=%s",
                namespace,
                result.published,
                result.deleted,
            )

    def _on_configmap(self, event: ConfigMapEvent) -> None:
        self.reconciler.process_configmap(event.resource, deleted=event.deleted)

    def _on_service(self, event: ServiceEvent) -> None:
        service = event.resource
        if service.type == SERVICE_TYPE_LOAD_BALANCER:
            LOG.debug("Service %s/%s is of type LoadBalancer", service.namespace, service.name)
        if self._init_state:
            return
        for route_group in affected_route_groups(service):
            self.synthesizer.update_pool_members(route_group)

    def _on_endpoints(self, event: EndpointsEvent) -> None:
        endpoints = event.resource
        service = self.informers.service(endpoints.namespace, endpoints.name)
        if service is None:
            return
        for route_group in affected_route_groups(service):
            self.synthesizer.update_pool_members(route_group)

    def _on_namespace(self, event: NamespaceEvent) -> None:
        namespace = event.resource.name
        if event.deleted:
            self.stop_namespace(namespace)
            removed = self.store.delete_partition(namespace)
            LOG.info(
                "Removed namespace '%s' from scope (%d virtual servers dropped)",
                namespace,
                len(removed),
            )
        else:
            self.start_namespace(namespace)
            LOG.info("Added namespace '%s' to scope", namespace)

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------
    def _flush_if_drained(self) -> None:
        if len(self.queue) != 0 or not self.store.is_config_updated():
            return
        request = ConfigRequest(
            ltm_config=self.store.ltm_snapshot(),
            request_id=next(self._request_ids),
            dns_config=self.store.dns_snapshot(),
            share_nodes=self.settings.share_nodes,
            default_route_domain=self.settings.default_route_domain,
        )
        LOG.debug("Posting config request %s", request.request_id)
        self._agent.post_config(request)
        self._init_state = False
        self.store.mark_flushed()
