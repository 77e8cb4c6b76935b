"""Pool member selection strategies.

Two ways of reaching a backend are supported: through every node on the
service's node port (``nodeport``) or directly at the endpoint addresses
(``cluster``). The synthesizer does not care which one is in use.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

from .config import Pool, PoolMember, VirtualServerConfig
from .index import ResourceIndex
from .models import SERVICE_TYPE_LOAD_BALANCER, SERVICE_TYPE_NODE_PORT, Service

LOG = logging.getLogger(__name__)

POOL_MEMBER_TYPE_NODEPORT = "nodeport"
POOL_MEMBER_TYPE_CLUSTER = "cluster"


class PoolMemberStrategy(ABC):
    """Compute the members of the pools of a virtual server."""

    def __init__(self, index: ResourceIndex) -> None:
        self._index = index

    def update(self, config: VirtualServerConfig, namespace: str) -> None:
        for pool in config.pools:
            service = self._index.service(namespace, pool.service_name)
            if service is None:
                LOG.debug(
                    "Service %s/%s not found, pool %s left without members",
                    namespace,
                    pool.service_name,
                    pool.name,
                )
                pool.members = []
                continue
            pool.members = sorted(
                set(self.members_for(service, pool)),
                key=lambda m: (m.address, m.port),
            )

    @abstractmethod
    def members_for(self, service: Service, pool: Pool) -> List[PoolMember]:
        """Return the members backing ``pool``."""


class NodePortMemberStrategy(PoolMemberStrategy):
    def __init__(self, index: ResourceIndex, node_addresses: Sequence[str]) -> None:
        super().__init__(index)
        self._node_addresses = list(node_addresses)

    def members_for(self, service: Service, pool: Pool) -> List[PoolMember]:
        if service.type not in (SERVICE_TYPE_NODE_PORT, SERVICE_TYPE_LOAD_BALANCER):
            LOG.debug(
                "Service %s/%s is of type %s, node port members unavailable",
                service.namespace,
                service.name,
                service.type,
            )
            return []
        port = service.port_numbered(pool.service_port)
        if port is None or not port.node_port:
            return []
        return [PoolMember(address, port.node_port) for address in self._node_addresses]


class ClusterMemberStrategy(PoolMemberStrategy):
    def members_for(self, service: Service, pool: Pool) -> List[PoolMember]:
        endpoints = self._index.endpoints(service.namespace, service.name)
        if endpoints is None:
            return []
        service_port = service.port_numbered(pool.service_port)
        port_name = service_port.name if service_port is not None else ""

        members: List[PoolMember] = []
        for subset in endpoints.subsets:
            for ep_port in subset.ports:
                if ep_port.name != port_name and len(subset.ports) > 1:
                    continue
                members.extend(PoolMember(address, ep_port.port) for address in subset.addresses)
        return members


def build_member_strategy(
    member_type: str,
    index: ResourceIndex,
    node_addresses: Sequence[str] = (),
) -> PoolMemberStrategy:
    if member_type == POOL_MEMBER_TYPE_NODEPORT:
        return NodePortMemberStrategy(index, node_addresses)
    if member_type == POOL_MEMBER_TYPE_CLUSTER:
        return ClusterMemberStrategy(index)
    raise ValueError(f"Unsupported pool member type '{member_type}'")
