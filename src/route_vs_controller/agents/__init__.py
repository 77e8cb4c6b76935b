"""Device agents the controller can post configs to."""

from .base import ConfigRequest, DeviceAgent  # noqa: F401
from .declaration_adapter import (  # noqa: F401
    DeclarationAgentAdapter,
    build_declaration_agent,
)

__all__ = [
    "ConfigRequest",
    "DeclarationAgentAdapter",
    "DeviceAgent",
    "build_declaration_agent",
]
