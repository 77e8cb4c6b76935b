"""Layered extended spec reconciliation.

Two kinds of ConfigMaps feed the per-namespace :class:`ExtendedSpec` map:

* the single global ConfigMap, listing one entry per namespace together
  with whether that namespace may override it; and
* namespace-local ConfigMaps, each carrying one entry for their own
  namespace.

Whenever either changes, only the namespaces whose *effective* spec changed
are torn down and/or resynthesized.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .config import ExtendedSpec, GroupSpec
from .errors import ConfigFormatError, RouteVSError
from .models import ConfigMap
from .spec_document import GroupConfigEntry, parse_configmap
from .store import ResourceStore
from .synthesizer import RouteGroupSynthesizer

LOG = logging.getLogger(__name__)


@dataclass
class SpecDiff:
    """Namespaces affected by a global ConfigMap change, one bucket each."""

    deleted: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    updated: List[str] = field(default_factory=list)
    created: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.deleted or self.modified or self.updated or self.created)


class ExtendedSpecReconciler:
    def __init__(
        self,
        store: ResourceStore,
        synthesizer: RouteGroupSynthesizer,
        global_configmap: str,
    ) -> None:
        self._store = store
        self._synthesizer = synthesizer
        self._global_configmap = global_configmap

    def is_global(self, configmap: ConfigMap) -> bool:
        return configmap.key == self._global_configmap

    def process_configmap(
        self,
        configmap: ConfigMap,
        deleted: bool = False,
        initial: bool = False,
    ) -> Optional[SpecDiff]:
        """Apply ``configmap`` to the extended spec map.

        Raises :class:`ConfigFormatError` before touching the store when the
        document is malformed. Returns the computed diff for the global
        ConfigMap and ``None`` for local ones.
        """

        start = time.monotonic()
        try:
            entries = parse_configmap(configmap)
            if self.is_global(configmap):
                return self._process_global(entries, deleted, initial)
            self._process_local(configmap, entries, deleted)
            return None
        finally:
            LOG.debug(
                "Finished syncing extended spec configmap %s (%.3fs)",
                configmap.key,
                time.monotonic() - start,
            )

    # ------------------------------------------------------------------
    # Global ConfigMap
    # ------------------------------------------------------------------
    def diff(self, candidate: Dict[str, GroupConfigEntry], deleted: bool = False) -> SpecDiff:
        result = SpecDiff()
        specs = self._store.extended_specs
        for namespace in sorted(specs):
            current = specs[namespace]
            if current.global_spec is None:
                continue
            new = candidate.get(namespace)
            if deleted or new is None:
                result.deleted.append(namespace)
                continue
            if current.global_spec == new.spec and current.override == new.allow_override:
                continue

            proposed = ExtendedSpec(
                global_spec=new.spec, local=current.local, override=new.allow_override
            )
            before, after = current.effective(), proposed.effective()
            if (
                current.override != new.allow_override
                or before.vserver_name != after.vserver_name
            ):
                result.modified.append(namespace)
            elif before != after:
                result.updated.append(namespace)
            else:
                result.unchanged.append(namespace)

        if not deleted:
            for namespace in sorted(candidate):
                current = specs.get(namespace)
                if current is None or current.global_spec is None:
                    result.created.append(namespace)
        return result

    def _process_global(
        self, entries: List[GroupConfigEntry], deleted: bool, initial: bool
    ) -> SpecDiff:
        candidate = {entry.namespace: entry for entry in entries}

        if initial:
            self._store.extended_specs = {
                ns: ExtendedSpec(global_spec=entry.spec, override=entry.allow_override)
                for ns, entry in candidate.items()
            }
            LOG.info("Loaded extended spec for %d route groups", len(candidate))
            return SpecDiff(created=sorted(candidate))

        result = self.diff(candidate, deleted)
        specs = self._store.extended_specs

        for namespace in result.deleted:
            self._teardown(namespace)
            current = specs[namespace]
            if current.local is not None and current.override:
                current.global_spec = None
                current.override = False
            else:
                del specs[namespace]

        for namespace in result.modified:
            self._teardown(namespace)
            self._set_global(namespace, candidate[namespace])
            self._rebuild(namespace, "modified extended spec")

        for namespace in result.updated:
            self._set_global(namespace, candidate[namespace])
            self._rebuild(namespace, "updated extended spec")

        for namespace in result.created:
            specs.setdefault(namespace, ExtendedSpec())
            self._set_global(namespace, candidate[namespace])
            self._rebuild(namespace, "addition of extended spec")

        for namespace in result.unchanged:
            self._set_global(namespace, candidate[namespace])

        if result:
            LOG.info(
                "Extended spec changes: deleted=%s modified=%s updated=%s created=%s",
                result.deleted,
                result.modified,
                result.updated,
                result.created,
            )
        return result

    def _set_global(self, namespace: str, entry: GroupConfigEntry) -> None:
        spec = self._store.extended_specs[namespace]
        spec.global_spec = entry.spec
        spec.override = entry.allow_override

    # ------------------------------------------------------------------
    # Local ConfigMaps
    # ------------------------------------------------------------------
    def _process_local(
        self, configmap: ConfigMap, entries: List[GroupConfigEntry], deleted: bool
    ) -> None:
        if not entries:
            return
        if len(entries) > 1:
            raise ConfigFormatError(
                f"local extended spec configmap {configmap.key} must hold a single entry"
            )
        entry = entries[0]
        if entry.namespace != configmap.namespace:
            raise ConfigFormatError(
                f"invalid extended route spec block in configmap {configmap.key}: "
                f"namespace '{entry.namespace}' does not match"
            )

        namespace = entry.namespace
        local = entry.spec
        current = self._store.extended_specs.get(namespace)

        if current is None:
            if not deleted:
                # Latent until the global spec allows an override.
                self._store.extended_specs[namespace] = ExtendedSpec(local=local)
            return

        in_effect = current.override and current.global_spec is not None
        if deleted:
            if current.local is None:
                return
            if not in_effect:
                current.local = None
                return
            self._teardown(namespace)
            current.local = None
            self._rebuild(namespace, "deletion of local extended spec")
            return

        if not in_effect:
            current.local = local
            return
        if current.local == local:
            return

        before: GroupSpec = current.effective()
        if before != local:
            if before.vserver_name != local.vserver_name:
                self._teardown(namespace)
            current.local = local
            self._rebuild(namespace, "local extended spec")
        else:
            current.local = local

    # ------------------------------------------------------------------
    # Synthesis triggers
    # ------------------------------------------------------------------
    def _teardown(self, namespace: str) -> None:
        try:
            self._synthesizer.process_routes(namespace, trigger_delete=True)
        except RouteVSError as exc:
            LOG.debug("Nothing to tear down for RouteGroup %s: %s", namespace, exc)

    def _rebuild(self, namespace: str, reason: str) -> None:
        try:
            self._synthesizer.process_routes(namespace)
        except RouteVSError as exc:
            LOG.error("Failed to process RouteGroup %s on %s: %s", namespace, reason, exc)
