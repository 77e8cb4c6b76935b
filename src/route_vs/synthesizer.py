"""Route group synthesis.

A route group (one namespace) is turned into at most two virtual servers:
one on the plain HTTP port and, when any route carries TLS, one on the
secure port. Each synthesis starts from scratch, so the published configs
only depend on the current routes and the effective extended spec.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .config import (
    DEFAULT_SNAT,
    PROTOCOL_HTTP,
    RESOURCE_TYPE_ROUTE,
    GroupSpec,
    Pool,
    Rule,
    VirtualPort,
    VirtualServerConfig,
)
from .errors import DuplicateRouteConflict, MissingSpecError
from .index import ResourceIndex
from .members import PoolMemberStrategy
from .models import Route
from .naming import policy_name, pool_name, virtual_server_name
from .ordering import (
    basic_virtual_ports,
    group_routes,
    routes_handle_http,
    virtual_ports_for_routes,
)
from .ports import route_service_port
from .rules import build_policy, compile_route_rule
from .store import ResourceStore
from .tls import RouteTLSHandler, TLSHandler

LOG = logging.getLogger(__name__)


@dataclass
class SynthesisResult:
    """What a :meth:`RouteGroupSynthesizer.process_routes` call changed."""

    route_group: str
    published: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    conflicts: List[DuplicateRouteConflict] = field(default_factory=list)


class RouteGroupSynthesizer:
    """Build and publish the virtual servers of route groups."""

    def __init__(
        self,
        store: ResourceStore,
        index: ResourceIndex,
        members: PoolMemberStrategy,
        tls_handler: Optional[TLSHandler] = None,
    ) -> None:
        self._store = store
        self._index = index
        self._members = members
        self._tls = tls_handler or RouteTLSHandler()

    def process_routes(self, route_group: str, trigger_delete: bool = False) -> SynthesisResult:
        """Synthesize ``route_group`` and publish the result.

        With ``trigger_delete`` (or when the group has no routes left) the
        group's virtual servers are removed instead. Any failure leaves the
        previously published configs untouched.
        """

        start = time.monotonic()
        try:
            return self._process_routes(route_group, trigger_delete)
        finally:
            LOG.debug(
                "Finished syncing RouteGroup %s (%.3fs)",
                route_group,
                time.monotonic() - start,
            )

    def _process_routes(self, route_group: str, trigger_delete: bool) -> SynthesisResult:
        spec = self._store.effective_spec(route_group)
        if spec is None:
            raise MissingSpecError(route_group)

        result = SynthesisResult(route_group)
        routes, result.conflicts = group_routes(route_group, self._index.routes(route_group))

        if trigger_delete or not routes:
            for port in basic_virtual_ports():
                name = virtual_server_name(route_group, spec, port)
                if self._store.delete_virtual_server(route_group, name) is not None:
                    LOG.debug("Removed virtual %s of RouteGroup %s", name, route_group)
                    result.deleted.append(name)
            return result

        required = virtual_ports_for_routes(routes)
        handles_http = routes_handle_http(routes)
        built: Dict[str, VirtualServerConfig] = {}
        stale: List[str] = []
        for port in basic_virtual_ports():
            name = virtual_server_name(route_group, spec, port)
            if port not in required or (port.protocol == PROTOCOL_HTTP and not handles_http):
                stale.append(name)
                continue
            config = self._build_virtual_server(route_group, name, spec, port, routes)
            self._members.update(config, route_group)
            built[name] = config

        for name in stale:
            if self._store.delete_virtual_server(route_group, name) is not None:
                result.deleted.append(name)
        for name, config in built.items():
            self._store.set_virtual_server(config)
            result.published.append(name)
        return result

    def _build_virtual_server(
        self,
        route_group: str,
        name: str,
        spec: GroupSpec,
        port: VirtualPort,
        routes: Sequence[Route],
    ) -> VirtualServerConfig:
        config = VirtualServerConfig(
            partition=route_group,
            name=name,
            protocol=port.protocol,
            address=spec.vserver_addr,
            port=port.port,
            snat=spec.snat or DEFAULT_SNAT,
            waf=spec.waf,
            irules=list(spec.irules),
        )

        rules: List[Rule] = []
        for ordinal, route in enumerate(routes):
            config.base_resources[route.key] = RESOURCE_TYPE_ROUTE
            service_port = route_service_port(self._index, route)
            pool = config.add_pool(
                Pool(
                    name=pool_name(route.namespace, route.service_name, service_port),
                    partition=route_group,
                    service_name=route.service_name,
                    service_port=service_port,
                )
            )
            if route.host not in config.hosts:
                config.hosts.append(route.host)
            rules.append(compile_route_rule(route, pool.name, route_group, ordinal))

            if route.secure:
                self._tls.attach(config, route, spec, service_port)
                LOG.debug("Updated route %s with TLS profile", route.key)

        config.policies = [build_policy(policy_name(name), route_group, rules)]
        return config

    def update_pool_members(self, route_group: str) -> List[str]:
        """Recompute pool members of the group's published virtual servers."""

        spec = self._store.effective_spec(route_group)
        if spec is None:
            return []

        updated: List[str] = []
        for port in basic_virtual_ports():
            name = virtual_server_name(route_group, spec, port)
            existing = self._store.get_virtual_server(route_group, name)
            if existing is None:
                continue
            fresh = copy.deepcopy(existing)
            self._members.update(fresh, route_group)
            if self._store.set_virtual_server(fresh):
                updated.append(name)
        return updated
