"""TLS attachment for secure routes."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from .config import PROTOCOL_HTTP, CustomProfile, GroupSpec, VirtualServerConfig
from .errors import InvalidRouteTLSError
from .models import (
    INSECURE_POLICY_REDIRECT,
    TERMINATION_EDGE,
    TERMINATION_PASSTHROUGH,
    TERMINATION_REENCRYPT,
    Route,
)
from .naming import client_ssl_profile_name, server_ssl_profile_name

LOG = logging.getLogger(__name__)

CONTEXT_CLIENT = "clientside"
CONTEXT_SERVER = "serverside"
DEFAULT_SERVER_SSL = "/Common/serverssl"


class TLSHandler(ABC):
    @abstractmethod
    def attach(
        self,
        config: VirtualServerConfig,
        route: Route,
        spec: GroupSpec,
        service_port: int,
    ) -> None:
        """Attach TLS material for ``route`` or raise :class:`TLSAttachmentError`."""


class RouteTLSHandler(TLSHandler):
    """Attach profiles built from the route's inline certificates.

    Routes without inline material fall back to ``default_client_ssl``
    when one is configured.
    """

    def __init__(self, default_client_ssl: str = "") -> None:
        self._default_client_ssl = default_client_ssl

    def attach(
        self,
        config: VirtualServerConfig,
        route: Route,
        spec: GroupSpec,
        service_port: int,
    ) -> None:
        tls = route.tls
        if tls is None:
            return

        if config.protocol == PROTOCOL_HTTP:
            if tls.insecure_edge_termination_policy == INSECURE_POLICY_REDIRECT:
                if route.host not in config.redirect_hosts:
                    config.redirect_hosts.append(route.host)
            return

        if tls.termination == TERMINATION_PASSTHROUGH:
            return
        if tls.termination not in (TERMINATION_EDGE, TERMINATION_REENCRYPT):
            raise InvalidRouteTLSError(
                f"unsupported TLS termination {tls.termination!r} on route {route.key}"
            )

        if tls.certificate and tls.key:
            name = client_ssl_profile_name(route.name)
            config.custom_profiles[name] = CustomProfile(
                name=name,
                partition=config.partition,
                context=CONTEXT_CLIENT,
                certificate=tls.certificate,
                key=tls.key,
                ca_certificate=tls.ca_certificate,
            )
            config.tls_profiles[name] = CONTEXT_CLIENT
        elif self._default_client_ssl:
            config.tls_profiles[self._default_client_ssl] = CONTEXT_CLIENT
        else:
            raise InvalidRouteTLSError(
                f"route {route.key} has no certificate and no default client SSL profile is set"
            )

        if tls.termination == TERMINATION_REENCRYPT:
            if tls.destination_ca_certificate:
                name = server_ssl_profile_name(route.name)
                config.custom_profiles[name] = CustomProfile(
                    name=name,
                    partition=config.partition,
                    context=CONTEXT_SERVER,
                    certificate=tls.destination_ca_certificate,
                )
                config.tls_profiles[name] = CONTEXT_SERVER
            else:
                config.tls_profiles[DEFAULT_SERVER_SSL] = CONTEXT_SERVER

        LOG.debug("Attached TLS profiles of route %s to %s", route.key, config.name)
