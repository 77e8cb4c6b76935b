"""Build :mod:`route_vs.models` objects from Kubernetes-style manifests."""

from __future__ import annotations

from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List

import yaml

from route_vs.models import (
    EPOCH,
    SERVICE_TYPE_CLUSTER_IP,
    ConfigMap,
    EndpointPort,
    Endpoints,
    EndpointSubset,
    Namespace,
    Route,
    RouteTLS,
    Service,
    ServicePort,
)

MANIFEST_SUFFIXES = (".yaml", ".yml", ".json")


def _timestamp(value: Any) -> datetime:
    if value is None or value == "":
        return EPOCH
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _port_ref(value: Any):
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    text = str(value)
    return int(text) if text.isdigit() else text


def _parse_route(metadata: dict, doc: dict) -> Route:
    spec = doc.get("spec") or {}
    tls_raw = spec.get("tls")
    tls = None
    if tls_raw is not None:
        tls = RouteTLS(
            termination=str(tls_raw.get("termination", "edge")).lower(),
            insecure_edge_termination_policy=str(tls_raw.get("insecureEdgeTerminationPolicy") or ""),
            certificate=tls_raw.get("certificate", ""),
            key=tls_raw.get("key", ""),
            ca_certificate=tls_raw.get("caCertificate", ""),
            destination_ca_certificate=tls_raw.get("destinationCACertificate", ""),
        )
    to = spec.get("to") or {}
    port = spec.get("port") or {}
    return Route(
        namespace=metadata["namespace"],
        name=metadata["name"],
        host=str(spec.get("host", "")),
        path=str(spec.get("path", "") or ""),
        service_name=str(to.get("name", "")),
        target_port=_port_ref(port.get("targetPort")),
        tls=tls,
        creation_timestamp=_timestamp(metadata.get("creationTimestamp")),
    )


def _parse_service(metadata: dict, doc: dict) -> Service:
    spec = doc.get("spec") or {}
    ports = [
        ServicePort(
            port=int(entry["port"]),
            name=str(entry.get("name", "")),
            target_port=_port_ref(entry.get("targetPort")),
            node_port=int(entry.get("nodePort", 0) or 0),
        )
        for entry in spec.get("ports") or []
    ]
    return Service(
        namespace=metadata["namespace"],
        name=metadata["name"],
        ports=tuple(ports),
        type=str(spec.get("type", SERVICE_TYPE_CLUSTER_IP)),
        cluster_ip=str(spec.get("clusterIP", "") or ""),
    )


def _parse_endpoints(metadata: dict, doc: dict) -> Endpoints:
    subsets = []
    for subset in doc.get("subsets") or []:
        addresses = tuple(str(a["ip"]) for a in subset.get("addresses") or [])
        ports = tuple(
            EndpointPort(port=int(p["port"]), name=str(p.get("name", "")))
            for p in subset.get("ports") or []
        )
        subsets.append(EndpointSubset(addresses=addresses, ports=ports))
    return Endpoints(namespace=metadata["namespace"], name=metadata["name"], subsets=tuple(subsets))


def _parse_configmap(metadata: dict, doc: dict) -> ConfigMap:
    data = doc.get("data") or {}
    return ConfigMap(
        namespace=metadata["namespace"],
        name=metadata["name"],
        data={str(k): str(v) for k, v in data.items()},
    )


def _parse_namespace(metadata: dict, doc: dict) -> Namespace:
    return Namespace(name=metadata["name"])


_PARSERS: Dict[str, Callable[[dict, dict], Any]] = {
    "Route": _parse_route,
    "Service": _parse_service,
    "Endpoints": _parse_endpoints,
    "ConfigMap": _parse_configmap,
    "Namespace": _parse_namespace,
}


def parse_manifest(doc: dict):
    if not isinstance(doc, dict):
        raise ValueError("manifest must be a mapping")
    kind = doc.get("kind")
    parser = _PARSERS.get(kind)
    if parser is None:
        raise ValueError(f"Unsupported manifest kind '{kind}'")
    metadata = doc.get("metadata") or {}
    if "name" not in metadata:
        raise ValueError(f"{kind} manifest missing metadata.name")
    if kind != "Namespace" and "namespace" not in metadata:
        raise ValueError(f"{kind} manifest missing metadata.namespace")
    return parser(metadata, doc)


def load_manifests(path: Path) -> List[Any]:
    """Parse every manifest under ``path`` (a file or a directory).

    ``List`` documents are flattened into their items.
    """

    path = Path(path)
    files = (
        sorted(p for p in path.iterdir() if p.suffix in MANIFEST_SUFFIXES)
        if path.is_dir()
        else [path]
    )
    resources: List[Any] = []
    for manifest in files:
        for doc in yaml.safe_load_all(manifest.read_text()):
            if doc is None:
                continue
            items = doc.get("items", []) if doc.get("kind") == "List" else [doc]
            resources.extend(parse_manifest(item) for item in items)
    return resources
