"""Shared resource store written by the synthesizer and read at push time."""

from __future__ import annotations

import copy
import logging
from typing import Dict, Iterator, List, Optional

from .config import ExtendedSpec, GroupSpec, VirtualServerConfig

LOG = logging.getLogger(__name__)

LTMConfig = Dict[str, Dict[str, VirtualServerConfig]]


class ResourceStore:
    """Virtual server configs per partition plus the extended spec map.

    Only the reconciliation worker mutates the store. Anything handed to
    another thread must come from :meth:`ltm_snapshot` /
    :meth:`dns_snapshot`, never from the live mappings.

    A partition whose last virtual server is removed stays in the LTM
    config as an empty mapping until the next flush, so the device agent
    sees the partition emptied rather than forgotten.
    """

    def __init__(self) -> None:
        self.extended_specs: Dict[str, ExtendedSpec] = {}
        self.dns_config: Dict[str, dict] = {}
        self._ltm: LTMConfig = {}
        self._updated = False

    # ------------------------------------------------------------------
    # Extended specs
    # ------------------------------------------------------------------
    def get_extended_spec(self, namespace: str) -> Optional[ExtendedSpec]:
        return self.extended_specs.get(namespace)

    def effective_spec(self, namespace: str) -> Optional[GroupSpec]:
        spec = self.extended_specs.get(namespace)
        if spec is None:
            return None
        return spec.effective()

    # ------------------------------------------------------------------
    # Virtual servers
    # ------------------------------------------------------------------
    def get_virtual_server(self, partition: str, name: str) -> Optional[VirtualServerConfig]:
        return self._ltm.get(partition, {}).get(name)

    def set_virtual_server(self, config: VirtualServerConfig) -> bool:
        """Publish ``config``; return ``True`` if the stored value changed."""

        partition = self._ltm.setdefault(config.partition, {})
        if partition.get(config.name) == config:
            return False
        partition[config.name] = config
        self._updated = True
        return True

    def delete_virtual_server(self, partition: str, name: str) -> Optional[VirtualServerConfig]:
        removed = self._ltm.get(partition, {}).pop(name, None)
        if removed is not None:
            LOG.debug("Deleted virtual server %s/%s", partition, name)
            self._updated = True
        return removed

    def delete_partition(self, partition: str) -> List[str]:
        names = sorted(self._ltm.get(partition, {}))
        for name in names:
            self.delete_virtual_server(partition, name)
        return names

    def virtual_servers(self, partition: Optional[str] = None) -> Iterator[VirtualServerConfig]:
        partitions = [partition] if partition is not None else sorted(self._ltm)
        for part in partitions:
            for name in sorted(self._ltm.get(part, {})):
                yield self._ltm[part][name]

    # ------------------------------------------------------------------
    # Push support
    # ------------------------------------------------------------------
    def is_config_updated(self) -> bool:
        return self._updated

    def ltm_snapshot(self) -> LTMConfig:
        return copy.deepcopy(self._ltm)

    def dns_snapshot(self) -> Dict[str, dict]:
        return copy.deepcopy(self.dns_config)

    def mark_flushed(self) -> None:
        for partition in [p for p, entries in self._ltm.items() if not entries]:
            del self._ltm[partition]
        self._updated = False
