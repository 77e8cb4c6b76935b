"""YAML configuration loader for the route virtual server agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

import yaml

from route_vs_controller.options import controller_opts

_CONTROLLER_KEYS = {opt.dest for opt in controller_opts}


@dataclass
class DeviceConfig:
    output_dir: Path = Path("/var/lib/route-vs")


@dataclass
class WatcherConfig:
    type: str
    path: Path
    interval: float = 5.0
    options: dict = field(default_factory=dict)


@dataclass
class AgentConfig:
    device: DeviceConfig = field(default_factory=DeviceConfig)
    controller: Dict[str, Any] = field(default_factory=dict)
    watchers: Sequence[WatcherConfig] = field(default_factory=list)


def _parse_device(section: dict) -> DeviceConfig:
    if not isinstance(section, dict):
        raise ValueError("'agent' section must be a mapping")
    return DeviceConfig(
        output_dir=Path(section.get("output_dir", DeviceConfig.output_dir)),
    )


def _parse_controller(section: dict) -> Dict[str, Any]:
    if not isinstance(section, dict):
        raise ValueError("'controller' section must be a mapping")
    unknown = sorted(set(section) - _CONTROLLER_KEYS)
    if unknown:
        raise ValueError(f"Unknown controller option(s): {', '.join(unknown)}")
    return dict(section)


def _parse_watchers(entries: Iterable[dict]) -> List[WatcherConfig]:
    watchers: List[WatcherConfig] = []
    for entry in entries:
        options = entry.get("options", {})
        if not isinstance(options, dict):
            raise ValueError("watcher 'options' must be a mapping if provided")
        watchers.append(
            WatcherConfig(
                type=str(entry["type"]),
                path=Path(entry.get("path", ".")),
                interval=float(entry.get("interval", entry.get("poll_interval", 5.0))),
                options=options,
            )
        )
    return watchers


def load_config(path: Path) -> AgentConfig:
    data = yaml.safe_load(path.read_text())
    if not isinstance(data, dict):
        raise ValueError("Agent configuration must be a mapping")

    device = _parse_device(data.get("agent") or {})
    controller = _parse_controller(data.get("controller") or {})

    watchers_section = data.get("watchers", [])
    if not isinstance(watchers_section, list):
        raise ValueError("'watchers' section must be a list")
    watchers = _parse_watchers(watchers_section)

    return AgentConfig(device=device, controller=controller, watchers=watchers)
