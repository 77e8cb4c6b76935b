"""Adapter between the declaration renderer and the device agent contract."""

from __future__ import annotations

import logging
import queue
from pathlib import Path
from threading import Thread
from typing import Optional

from route_vs.render import DeclarationRenderer, RenderResult

from .base import ConfigRequest, DeviceAgent

LOG = logging.getLogger(__name__)


class DeclarationAgentAdapter(DeviceAgent):
    """Wrap :class:`~route_vs.render.DeclarationRenderer` for controller use.

    Once :meth:`start` has been called, requests are written by a background
    thread; if several requests pile up only the newest one is rendered.
    Before that, :meth:`post_config` renders inline.
    """

    def __init__(self, renderer: DeclarationRenderer) -> None:
        self._renderer = renderer
        self._requests: "queue.Queue[Optional[ConfigRequest]]" = queue.Queue()
        self._thread: Optional[Thread] = None
        self._last_result: Optional[RenderResult] = None
        self._last_request_id: Optional[int] = None

    @property
    def last_result(self) -> Optional[RenderResult]:
        return self._last_result

    @property
    def last_request_id(self) -> Optional[int]:
        return self._last_request_id

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = Thread(target=self._run, name="declaration-agent", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        if self._thread is None:
            return
        self._requests.put(None)
        self._thread.join(timeout=timeout)
        self._thread = None

    def post_config(self, request: ConfigRequest) -> None:
        if self._thread is None:
            self._deliver(request)
            return
        self._requests.put(request)

    def _run(self) -> None:
        while True:
            request = self._requests.get()
            # Skip straight to the newest pending request.
            while request is not None and not self._requests.empty():
                newer = self._requests.get_nowait()
                if newer is None:
                    self._deliver(request)
                    return
                request = newer
            if request is None:
                return
            self._deliver(request)

    def _deliver(self, request: ConfigRequest) -> None:
        try:
            result = self._renderer.render(
                request.ltm_config,
                request_id=request.request_id,
                dns_config=request.dns_config,
                share_nodes=request.share_nodes,
                default_route_domain=request.default_route_domain,
            )
        except OSError:
            LOG.exception("Failed to write declaration for request %s", request.request_id)
            return
        self._last_result = result
        self._last_request_id = request.request_id
        LOG.info("Wrote declaration for request %s to %s", request.request_id, result.output_path)


def build_declaration_agent(output_dir: Path) -> DeclarationAgentAdapter:
    """Helper mirroring the builder used by the agent runtime."""

    return DeclarationAgentAdapter(DeclarationRenderer(output_dir))
