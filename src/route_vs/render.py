"""Render virtual server snapshots into a JSON declaration file."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .config import Policy, Pool, VirtualServerConfig

DECLARATION_FILE = "ltm.json"


@dataclass
class RenderResult:
    """Result of a declaration rendering operation."""

    config_text: str
    output_path: Path


class DeclarationRenderer:
    """Serialise the LTM config of a push into ``<output_dir>/ltm.json``."""

    def __init__(self, output_dir: Path) -> None:
        self._output_dir = Path(output_dir)

    def render(
        self,
        ltm_config: Mapping[str, Mapping[str, VirtualServerConfig]],
        *,
        request_id: int = 0,
        dns_config: Optional[Mapping[str, Any]] = None,
        share_nodes: bool = False,
        default_route_domain: int = 0,
    ) -> RenderResult:
        declaration = {
            "requestId": request_id,
            "shareNodes": share_nodes,
            "defaultRouteDomain": default_route_domain,
            "partitions": {
                partition: self._render_partition(virtuals)
                for partition, virtuals in sorted(ltm_config.items())
            },
            "dns": dict(dns_config or {}),
        }
        body = json.dumps(declaration, indent=2, sort_keys=True)

        self._output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self._output_dir / DECLARATION_FILE
        output_path.write_text(body)

        return RenderResult(config_text=body, output_path=output_path)

    def _render_partition(self, virtuals: Mapping[str, VirtualServerConfig]) -> Dict[str, Any]:
        pools: Dict[str, Dict[str, Any]] = {}
        virtual_servers = []
        for name in sorted(virtuals):
            config = virtuals[name]
            virtual_servers.append(render_virtual_server(config))
            for pool in config.pools:
                pools.setdefault(pool.name, _render_pool(pool))
        return {
            "virtualServers": virtual_servers,
            "pools": [pools[name] for name in sorted(pools)],
        }


def render_virtual_server(config: VirtualServerConfig) -> Dict[str, Any]:
    destination = f"{config.address}:{config.port}" if config.address else f":{config.port}"
    return {
        "name": config.name,
        "enabled": config.enabled,
        "protocol": config.protocol,
        "destination": destination,
        "snat": config.snat,
        "waf": config.waf,
        "iRules": list(config.irules),
        "pools": [pool.name for pool in config.pools],
        "policies": [_render_policy(policy) for policy in config.policies],
        "profiles": [
            {"name": name, "context": context}
            for name, context in sorted(config.tls_profiles.items())
        ],
        "customProfiles": [
            {
                "name": profile.name,
                "context": profile.context,
                "certificate": profile.certificate,
                "key": profile.key,
                "caCertificate": profile.ca_certificate,
            }
            for _, profile in sorted(config.custom_profiles.items())
        ],
        "redirectHosts": list(config.redirect_hosts),
        "hosts": list(config.hosts),
    }


def _render_pool(pool: Pool) -> Dict[str, Any]:
    return {
        "name": pool.name,
        "serviceName": pool.service_name,
        "servicePort": pool.service_port,
        "members": [
            {"address": m.address, "port": m.port, "session": m.session}
            for m in pool.members
        ],
    }


def _render_policy(policy: Policy) -> Dict[str, Any]:
    rules: List[Dict[str, Any]] = []
    for rule in policy.rules:
        rules.append(
            {
                "name": rule.name,
                "ordinal": rule.ordinal,
                "uri": rule.uri,
                "match": rule.match.value,
                "pool": rule.pool_name,
                "conditions": [
                    {
                        "name": c.name,
                        "operator": c.operator,
                        "values": list(c.values),
                        "index": c.index,
                    }
                    for c in rule.conditions
                ],
            }
        )
    return {"name": policy.name, "strategy": "first-match", "rules": rules}
