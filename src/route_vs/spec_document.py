"""Strict parser for the ``extendedSpec`` ConfigMap document.

Expected shape::

    extendedRouteGroupConfigs:
      - namespace: tenant-a
        allowOverride: true
        vServerName: tenant-a-vs
        vServerAddr: 10.8.0.4
        snat: auto
        waf: /Common/WAF_Policy
        iRules:
          - /Common/log_irule

Unknown fields and type mismatches reject the whole document.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Set

import yaml

from .config import GroupSpec
from .errors import ConfigFormatError
from .models import ConfigMap

EXTENDED_SPEC_KEY = "extendedSpec"
GROUP_CONFIGS_KEY = "extendedRouteGroupConfigs"

_STRING_FIELDS = {
    "vServerName": "vserver_name",
    "vServerAddr": "vserver_addr",
    "snat": "snat",
    "waf": "waf",
}
_KNOWN_FIELDS = {"namespace", "allowOverride", "iRules", *_STRING_FIELDS}


@dataclass(frozen=True)
class GroupConfigEntry:
    namespace: str
    allow_override: bool
    spec: GroupSpec


def _string(entry: dict, key: str, where: str) -> str:
    value = entry.get(key, "")
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigFormatError(f"{where}: '{key}' must be a string, got {type(value).__name__}")
    return value


def _parse_entry(entry: Any, position: int) -> GroupConfigEntry:
    where = f"{GROUP_CONFIGS_KEY}[{position}]"
    if not isinstance(entry, dict):
        raise ConfigFormatError(f"{where} must be a mapping")

    unknown = sorted(str(key) for key in set(entry) - _KNOWN_FIELDS)
    if unknown:
        raise ConfigFormatError(f"{where}: unknown field(s) {', '.join(unknown)}")

    namespace = _string(entry, "namespace", where)
    if not namespace:
        raise ConfigFormatError(f"{where}: 'namespace' is required")

    allow_override = entry.get("allowOverride", False)
    if allow_override is None:
        allow_override = False
    if not isinstance(allow_override, bool):
        raise ConfigFormatError(f"{where}: 'allowOverride' must be a boolean")

    irules_raw = entry.get("iRules") or []
    if not isinstance(irules_raw, list) or not all(isinstance(r, str) for r in irules_raw):
        raise ConfigFormatError(f"{where}: 'iRules' must be a list of strings")

    fields = {attr: _string(entry, key, where) for key, attr in _STRING_FIELDS.items()}
    return GroupConfigEntry(
        namespace=namespace,
        allow_override=allow_override,
        spec=GroupSpec(irules=tuple(irules_raw), **fields),
    )


def parse_extended_spec(text: str) -> List[GroupConfigEntry]:
    try:
        document = yaml.safe_load(text) if text else None
    except yaml.YAMLError as exc:
        raise ConfigFormatError(f"invalid extended spec document: {exc}") from exc

    if document is None:
        return []
    if not isinstance(document, dict):
        raise ConfigFormatError("extended spec document must be a mapping")

    unknown = sorted(str(key) for key in set(document) - {GROUP_CONFIGS_KEY})
    if unknown:
        raise ConfigFormatError(f"unknown field(s) {', '.join(unknown)}")

    entries_raw = document.get(GROUP_CONFIGS_KEY) or []
    if not isinstance(entries_raw, list):
        raise ConfigFormatError(f"'{GROUP_CONFIGS_KEY}' must be a list")

    entries = [_parse_entry(entry, position) for position, entry in enumerate(entries_raw)]
    seen: Set[str] = set()
    for entry in entries:
        if entry.namespace in seen:
            raise ConfigFormatError(f"namespace '{entry.namespace}' listed more than once")
        seen.add(entry.namespace)
    return entries


def parse_configmap(configmap: ConfigMap) -> List[GroupConfigEntry]:
    try:
        return parse_extended_spec(configmap.data.get(EXTENDED_SPEC_KEY, ""))
    except ConfigFormatError as exc:
        raise ConfigFormatError(
            f"invalid extended route spec in configmap {configmap.key}: {exc}"
        ) from exc
