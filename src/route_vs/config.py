"""Load-balancer side data structures produced by the synthesizer.

A :class:`VirtualServerConfig` is the unit published into the shared
:class:`~route_vs.store.ResourceStore` and later pushed to the device agent.
Everything here is plain data so that a snapshot can be deep-copied and
rendered without holding references into the live store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

DEFAULT_HTTP_PORT = 80
DEFAULT_HTTPS_PORT = 443
DEFAULT_SNAT = "auto"

PROTOCOL_HTTP = "http"
PROTOCOL_HTTPS = "https"

RESOURCE_TYPE_ROUTE = "Route"


class MatchKind(Enum):
    """How a policy rule matches the request host."""

    EXACT = "exact"
    WILDCARD = "wildcard"


@dataclass(frozen=True)
class GroupSpec:
    """One ``extendedRouteGroupConfigs`` entry minus namespace/override."""

    vserver_name: str = ""
    vserver_addr: str = ""
    snat: str = ""
    waf: str = ""
    irules: Tuple[str, ...] = ()


@dataclass
class ExtendedSpec:
    """Global and local halves of a namespace's extended spec.

    The local half only takes effect when the global half allows an
    override; until then it is kept but latent.
    """

    global_spec: Optional[GroupSpec] = None
    local: Optional[GroupSpec] = None
    override: bool = False

    def effective(self) -> Optional[GroupSpec]:
        if self.override and self.local is not None:
            return self.local
        return self.global_spec


@dataclass(frozen=True)
class VirtualPort:
    protocol: str
    port: int


HTTP_PORT = VirtualPort(PROTOCOL_HTTP, DEFAULT_HTTP_PORT)
HTTPS_PORT = VirtualPort(PROTOCOL_HTTPS, DEFAULT_HTTPS_PORT)


@dataclass(frozen=True)
class PoolMember:
    address: str
    port: int
    session: str = "user-enabled"


@dataclass
class Pool:
    name: str
    partition: str
    service_name: str
    service_port: int
    members: List[PoolMember] = field(default_factory=list)


@dataclass(frozen=True)
class Condition:
    """A single policy rule condition.

    ``index`` is the 1-based path segment position for ``path-segment``
    conditions and ``0`` otherwise.
    """

    name: str
    operator: str
    values: Tuple[str, ...]
    index: int = 0


@dataclass
class Rule:
    name: str
    uri: str
    pool_name: str
    ordinal: int
    match: MatchKind
    conditions: Tuple[Condition, ...] = ()


@dataclass
class Policy:
    name: str
    partition: str
    rules: List[Rule] = field(default_factory=list)


@dataclass(frozen=True)
class CustomProfile:
    """Inline TLS material taken from a route."""

    name: str
    partition: str
    context: str
    certificate: str
    key: str = ""
    ca_certificate: str = ""


@dataclass
class VirtualServerConfig:
    """Configuration of one virtual server (one group, one port)."""

    partition: str
    name: str
    protocol: str
    address: str
    port: int
    enabled: bool = True
    snat: str = DEFAULT_SNAT
    waf: str = ""
    irules: List[str] = field(default_factory=list)
    pools: List[Pool] = field(default_factory=list)
    policies: List[Policy] = field(default_factory=list)
    tls_profiles: Dict[str, str] = field(default_factory=dict)
    custom_profiles: Dict[str, CustomProfile] = field(default_factory=dict)
    redirect_hosts: List[str] = field(default_factory=list)
    base_resources: Dict[str, str] = field(default_factory=dict)
    hosts: List[str] = field(default_factory=list)

    def find_pool(self, name: str) -> Optional[Pool]:
        return next((p for p in self.pools if p.name == name), None)

    def add_pool(self, pool: Pool) -> Pool:
        """Add ``pool`` unless a pool with the same name already exists."""

        existing = self.find_pool(pool.name)
        if existing is not None:
            return existing
        self.pools.append(pool)
        return pool

    def pool_names(self) -> Sequence[str]:
        return [p.name for p in self.pools]
