"""Deterministic names for virtual servers, pools, policies and rules.

Names only depend on their inputs so that the same route set always yields
the same objects on the device, and routes sharing a backend share a pool.
"""

from __future__ import annotations

import re

from .config import GroupSpec, VirtualPort

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")


def device_name(name: str) -> str:
    """Replace characters the device rejects in object names."""

    return _INVALID_CHARS.sub("_", name)


def virtual_server_name(route_group: str, spec: GroupSpec, port: VirtualPort) -> str:
    base = spec.vserver_name or f"routes_{route_group}"
    return device_name(f"{base}_{port.port}")


def pool_name(namespace: str, service: str, port: int) -> str:
    return device_name(f"{service}_{port}_{namespace}")


def policy_name(virtual_server: str) -> str:
    return device_name(f"{virtual_server}_policy")


def rule_name(host: str, path: str, pool: str) -> str:
    if not path:
        return device_name(f"vs_{host}_{pool}")
    # "/" keeps an empty segment so it never shares a name with "".
    return device_name(f"vs_{host}_{path[1:]}_{pool}")


def client_ssl_profile_name(route_name: str) -> str:
    return device_name(f"{route_name}-clientssl")


def server_ssl_profile_name(route_name: str) -> str:
    return device_name(f"{route_name}-serverssl")
