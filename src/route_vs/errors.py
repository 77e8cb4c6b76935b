"""Exceptions raised by the reconciliation engine.

``retryable`` tells the work-queue dispatcher whether the failed item should
be re-queued with backoff (a dependency may show up later) or forgotten
(retrying cannot change a static payload).
"""

from __future__ import annotations

from dataclasses import dataclass


class RouteVSError(Exception):
    retryable = False


class ConfigFormatError(RouteVSError):
    """The extended spec document is malformed."""


class MissingSpecError(RouteVSError):
    """A route group has no effective extended spec."""

    retryable = True

    def __init__(self, route_group: str) -> None:
        super().__init__(
            f"extended route spec not available for route group: {route_group}"
        )
        self.route_group = route_group


class PortResolutionError(RouteVSError):
    """The backend service port of a route could not be resolved."""

    retryable = True


class RuleCompilationError(RouteVSError):
    """A route cannot be turned into a policy rule."""


class TLSAttachmentError(RouteVSError):
    """TLS material for a secure route could not be attached."""

    retryable = True


class InvalidRouteTLSError(TLSAttachmentError):
    """The TLS block of a route can never be attached as written."""

    retryable = False


class UnknownResourceKind(RouteVSError):
    """A work item of an unsupported kind reached the dispatcher."""


@dataclass(frozen=True)
class DuplicateRouteConflict:
    """A route discarded because an earlier route owns its host and path."""

    route_group: str
    discarded: str
    kept: str
    host: str
    path: str

    def __str__(self) -> str:
        return (
            f"route {self.discarded} discarded in favour of {self.kept}: "
            f"duplicate host {self.host!r} path {self.path!r}"
        )
