"""Entry point for the standalone route virtual server agent."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event, Thread
from typing import Any, Mapping

from oslo_config import cfg

from route_vs_controller import Controller, ControllerSettings
from route_vs_controller.agents import build_declaration_agent
from route_vs_controller.options import register_controller_opts

from .config import load_config
from .watchers import FileResourceWatcher

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def build_conf(overrides: Mapping[str, Any]) -> cfg.ConfigOpts:
    """Return a ``ConfigOpts`` with controller options and YAML overrides applied."""

    conf = cfg.ConfigOpts()
    register_controller_opts(conf)
    conf([], project="route-vs-agent", default_config_files=[])
    for name, value in overrides.items():
        conf.set_override(name, value)
    return conf


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the route virtual server agent")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("/etc/route-vs/agent.yaml"),
        help="Path to the agent configuration file",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Reconcile the current manifests a single time and exit",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    config = load_config(args.config)
    settings = ControllerSettings.from_conf(build_conf(config.controller))

    agent = build_declaration_agent(config.device.output_dir)
    controller = Controller.build(settings, agent)

    stop_event = Event()

    watchers = []
    for watcher_cfg in config.watchers:
        if watcher_cfg.type == "file":
            watcher = FileResourceWatcher(
                controller=controller,
                path=watcher_cfg.path,
                interval=watcher_cfg.interval,
                stop_event=stop_event,
            )
        else:
            raise ValueError(f"unsupported watcher type '{watcher_cfg.type}'")
        # Fill the cache before the worker takes its initial service count
        try:
            watcher.poll()
        except Exception:  # pragma: no cover - logged inside watcher
            LOG.exception("initial poll failed for watcher %s", watcher_cfg.path)
        watchers.append(watcher)

    if args.once:
        controller.initialise()
        processed = controller.drain(timeout=1.0)
        LOG.info("processed %d work items", processed)
        return 0

    if not watchers:
        LOG.warning("no watchers configured; agent will idle")

    agent.start()
    worker = Thread(target=controller.run, name="route-worker", daemon=True)
    worker.start()
    for watcher in watchers:
        watcher.start()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        while not stop_event.is_set():
            stop_event.wait(1.0)
    except KeyboardInterrupt:  # pragma: no cover - fallback if signal not set
        stop_event.set()

    for watcher in watchers:
        watcher.join()
    controller.shutdown()
    worker.join(timeout=5.0)
    agent.stop()

    LOG.info("route virtual server agent stopped")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
