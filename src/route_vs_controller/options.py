"""Controller configuration options.

The options are registered with oslo.config so they can be set from an
oslo-style config file or overridden programmatically by the agent runtime
(see :func:`route_vs_agent.main.build_conf`).
"""

from dataclasses import dataclass, field
from typing import List

from oslo_config import cfg

from route_vs.members import POOL_MEMBER_TYPE_CLUSTER, POOL_MEMBER_TYPE_NODEPORT

from .queue import DEFAULT_BASE_DELAY, DEFAULT_MAX_DELAY

controller_opts = [
    cfg.StrOpt('route_spec_configmap',
               default='kube-system/global-extended-route-spec',
               help='Namespace/name of the ConfigMap holding the global '
                    'extended route spec.'),
    cfg.StrOpt('pool_member_type',
               default=POOL_MEMBER_TYPE_NODEPORT,
               choices=[POOL_MEMBER_TYPE_NODEPORT, POOL_MEMBER_TYPE_CLUSTER],
               help='How pool members reach backends: through node ports '
                    'or directly at endpoint addresses.'),
    cfg.ListOpt('node_addresses',
                default=[],
                help='Node addresses used as pool members in nodeport mode.'),
    cfg.ListOpt('namespaces',
                default=[],
                help='Namespaces watched from start-up. Further namespaces '
                     'enter scope through Namespace events.'),
    cfg.BoolOpt('share_nodes',
                default=False,
                help='Ask the device agent to share node objects across '
                     'partitions.'),
    cfg.IntOpt('default_route_domain',
               default=0,
               help='Route domain applied to virtual addresses without one.'),
    cfg.StrOpt('default_client_ssl',
               default='',
               help='Client SSL profile attached to secure routes without '
                    'inline certificates.'),
    cfg.FloatOpt('queue_base_delay',
                 default=DEFAULT_BASE_DELAY,
                 help='Initial retry delay in seconds for failed work items.'),
    cfg.FloatOpt('queue_max_delay',
                 default=DEFAULT_MAX_DELAY,
                 help='Upper bound in seconds for the retry delay.'),
]


def register_controller_opts(conf):
    """Register controller options with ``conf`` (DEFAULT group)."""
    conf.register_opts(controller_opts)


@dataclass
class ControllerSettings:
    route_spec_configmap: str = 'kube-system/global-extended-route-spec'
    pool_member_type: str = POOL_MEMBER_TYPE_NODEPORT
    node_addresses: List[str] = field(default_factory=list)
    namespaces: List[str] = field(default_factory=list)
    share_nodes: bool = False
    default_route_domain: int = 0
    default_client_ssl: str = ''
    queue_base_delay: float = DEFAULT_BASE_DELAY
    queue_max_delay: float = DEFAULT_MAX_DELAY

    @classmethod
    def from_conf(cls, conf):
        """Build settings from a ``ConfigOpts`` with registered options."""
        return cls(
            route_spec_configmap=conf.route_spec_configmap,
            pool_member_type=conf.pool_member_type,
            node_addresses=list(conf.node_addresses),
            namespaces=list(conf.namespaces),
            share_nodes=conf.share_nodes,
            default_route_domain=conf.default_route_domain,
            default_client_ssl=conf.default_client_ssl,
            queue_base_delay=conf.queue_base_delay,
            queue_max_delay=conf.queue_max_delay,
        )
