"""Route group to virtual server reconciliation engine.

This package turns route-like resources grouped per namespace into virtual
server configurations for an external load balancer. It does not depend on
any Kubernetes client. It focuses on:

* ordering and de-duplicating the routes of a group and deriving the ports
  its virtual servers listen on;
* compiling deterministic forwarding policies (exact hosts before wildcard
  hosts);
* merging the cluster-global extended spec with namespace-local overrides
  and resynthesizing only the groups whose effective spec changed; and
* keeping the published configs in a store that can be snapshotted for the
  device agent.
"""

from .extended_spec import ExtendedSpecReconciler  # noqa: F401
from .store import ResourceStore  # noqa: F401
from .synthesizer import RouteGroupSynthesizer  # noqa: F401

__all__ = [
    "ExtendedSpecReconciler",
    "ResourceStore",
    "RouteGroupSynthesizer",
]
