"""
Proxmox VE MCP Server

Exposes a Proxmox VE cluster's REST API as a small catalog of MCP tools
(nodes, guests, storage, cluster health and guest command execution).
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .client import (
    ProxmoxAPIError,
    ProxmoxClient,
    ProxmoxConnectionError,
    ProxmoxEmptyResponseError,
    ProxmoxParseError,
    ProxmoxVEError,
)
from .config import ProxmoxConfig
from .tools import ProxmoxTools, TOOL_SPECS

__all__ = [
    "__version__",
    "ProxmoxAPIError",
    "ProxmoxClient",
    "ProxmoxConfig",
    "ProxmoxConnectionError",
    "ProxmoxEmptyResponseError",
    "ProxmoxParseError",
    "ProxmoxTools",
    "ProxmoxVEError",
    "TOOL_SPECS",
]
