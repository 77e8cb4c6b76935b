"""Cluster-side resources consumed by the reconciliation engine.

These dataclasses carry only the fields the synthesizer and the override
reconciler look at. Watchers build them from plain manifests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Mapping, Optional, Sequence, Union

# Route.spec.tls.insecureEdgeTerminationPolicy values
INSECURE_POLICY_NONE = "None"
INSECURE_POLICY_ALLOW = "Allow"
INSECURE_POLICY_REDIRECT = "Redirect"

TERMINATION_EDGE = "edge"
TERMINATION_PASSTHROUGH = "passthrough"
TERMINATION_REENCRYPT = "reencrypt"

SERVICE_TYPE_CLUSTER_IP = "ClusterIP"
SERVICE_TYPE_NODE_PORT = "NodePort"
SERVICE_TYPE_LOAD_BALANCER = "LoadBalancer"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class RouteTLS:
    """TLS block of a route."""

    termination: str = TERMINATION_EDGE
    insecure_edge_termination_policy: str = ""
    certificate: str = ""
    key: str = ""
    ca_certificate: str = ""
    destination_ca_certificate: str = ""

    def handles_http(self) -> bool:
        return self.insecure_edge_termination_policy in (
            INSECURE_POLICY_ALLOW,
            INSECURE_POLICY_REDIRECT,
        )


@dataclass(frozen=True)
class Route:
    """A route scoped to a namespace (its route group).

    Attributes
    ----------
    target_port:
        ``int`` for a literal service port, ``str`` for a named service port
        or ``None`` to use the first port of the target service.
    creation_timestamp:
        Used to break ordering ties, older routes win.
    """

    namespace: str
    name: str
    host: str
    service_name: str
    path: str = ""
    target_port: Union[int, str, None] = None
    tls: Optional[RouteTLS] = None
    creation_timestamp: datetime = EPOCH

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def secure(self) -> bool:
        return self.tls is not None


@dataclass(frozen=True)
class ServicePort:
    port: int
    name: str = ""
    target_port: Union[int, str, None] = None
    node_port: int = 0


@dataclass(frozen=True)
class Service:
    namespace: str
    name: str
    ports: Sequence[ServicePort] = ()
    type: str = SERVICE_TYPE_CLUSTER_IP
    cluster_ip: str = ""

    def port_named(self, name: str) -> Optional[ServicePort]:
        return next((p for p in self.ports if p.name == name), None)

    def port_numbered(self, port: int) -> Optional[ServicePort]:
        return next((p for p in self.ports if p.port == port), None)


@dataclass(frozen=True)
class EndpointPort:
    port: int
    name: str = ""


@dataclass(frozen=True)
class EndpointSubset:
    addresses: Sequence[str] = ()
    ports: Sequence[EndpointPort] = ()


@dataclass(frozen=True)
class Endpoints:
    namespace: str
    name: str
    subsets: Sequence[EndpointSubset] = ()


@dataclass(frozen=True)
class ConfigMap:
    namespace: str
    name: str
    data: Mapping[str, str] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class Namespace:
    name: str
