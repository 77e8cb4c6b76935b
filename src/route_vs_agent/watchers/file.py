"""File-based resource watcher."""

from __future__ import annotations

import logging
from pathlib import Path
from threading import Event, Thread
from typing import Dict, Tuple

import yaml

from route_vs_controller import Controller
from route_vs_controller.informers import resource_kind, resource_namespace

from ..manifests import load_manifests

LOG = logging.getLogger(__name__)

ResourceKey = Tuple[str, str, str]


def _key(resource) -> ResourceKey:
    return (resource_kind(resource), resource_namespace(resource), resource.name)


def _namespaces_first(key: ResourceKey) -> Tuple[int, ResourceKey]:
    return (0 if key[1] == "" else 1, key)


class FileResourceWatcher(Thread):
    """Poll a manifest directory and feed changed objects to the controller."""

    def __init__(
        self,
        controller: Controller,
        path: Path,
        interval: float,
        stop_event: Event,
    ) -> None:
        super().__init__(daemon=True)
        self._controller = controller
        self._path = Path(path)
        self._interval = interval
        self._stop_event = stop_event
        self._state: Dict[ResourceKey, object] = {}

    def run(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("file watcher encountered an error")
            self._stop_event.wait(self._interval)

    def poll(self) -> None:
        if not self._path.exists():
            LOG.debug("manifest path %s does not exist yet", self._path)
            return

        try:
            resources = load_manifests(self._path)
        except yaml.YAMLError as exc:
            LOG.warning("failed to parse manifests under %s: %s", self._path, exc)
            return
        except (KeyError, TypeError, ValueError) as exc:
            LOG.warning("invalid manifest under %s: %s", self._path, exc)
            return

        desired = {_key(resource): resource for resource in resources}

        # Namespaces enter scope before their objects and leave it after them.
        for key in sorted(desired, key=_namespaces_first):
            if self._state.get(key) != desired[key]:
                LOG.debug("%s %s/%s changed", *key)
                self._controller.observe(desired[key])

        for key in sorted(set(self._state) - set(desired), key=_namespaces_first, reverse=True):
            LOG.debug("%s %s/%s removed", *key)
            self._controller.observe(self._state[key], deleted=True)

        self._state = desired

