"""Configuration for the Proxmox VE MCP server.

Values are resolved with priority: CLI arguments > environment variables >
``.env`` file > defaults.
"""

import argparse
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8006
DEFAULT_USER = "root@pam"
DEFAULT_TOKEN_NAME = "mcpserver"
DEFAULT_TIMEOUT = 30.0

TRUE_VALUES = ("true", "1", "yes", "on")


def parse_bool(value: Any, default: bool = False) -> bool:
    """Interpret a CLI/env value as a boolean."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


@dataclass(frozen=True)
class ProxmoxConfig:
    """Connection settings for one Proxmox VE cluster."""

    host: str = DEFAULT_HOST
    user: str = DEFAULT_USER
    token_name: str = DEFAULT_TOKEN_NAME
    token_value: Optional[str] = None
    port: int = DEFAULT_PORT
    allow_elevated: bool = False
    timeout: float = DEFAULT_TIMEOUT

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}/api2/json"

    @property
    def authorization(self) -> str:
        """Value of the Authorization header for API token auth."""
        return f"PVEAPIToken={self.user}!{self.token_name}={self.token_value}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 cli_args: Optional[argparse.Namespace] = None) -> "ProxmoxConfig":
        """Build a config from environment variables, overridden by CLI args."""
        env = os.environ if environ is None else environ

        def _get(cli_attr: str, env_var: str, default=None):
            if cli_args is not None:
                value = getattr(cli_args, cli_attr, None)
                if value is not None:
                    return value
            value = env.get(env_var)
            if value is None or value == "":
                return default
            return value

        config = cls(
            host=_get("host", "PROXMOX_HOST", DEFAULT_HOST),
            user=_get("user", "PROXMOX_USER", DEFAULT_USER),
            token_name=_get("token_name", "PROXMOX_TOKEN_NAME", DEFAULT_TOKEN_NAME),
            token_value=_get("token_value", "PROXMOX_TOKEN_VALUE"),
            port=int(_get("port", "PROXMOX_PORT", DEFAULT_PORT)),
            allow_elevated=parse_bool(_get("allow_elevated", "PROXMOX_ALLOW_ELEVATED")),
            timeout=float(_get("timeout", "PROXMOX_TIMEOUT", DEFAULT_TIMEOUT)),
        )

        # Not fatal: the backend rejects the calls with an authorization error
        if not config.token_value:
            logger.warning("PROXMOX_TOKEN_VALUE is not set; API calls will be rejected by Proxmox")

        return config


def load_env_file(path: Optional[str] = None) -> bool:
    """Load a ``.env`` file without overriding variables already set."""
    env_path = path or os.path.join(os.getcwd(), ".env")
    if not os.path.isfile(env_path):
        if path:
            logger.warning(f"Could not load .env file: {env_path} not found")
        return False
    loaded = load_dotenv(env_path, override=False)
    logger.debug(f"Loaded environment from {env_path}")
    return loaded


def build_arg_parser() -> argparse.ArgumentParser:
    """Command line interface of the ``pve-mcp`` entry point."""
    parser = argparse.ArgumentParser(
        prog="pve-mcp",
        description="Proxmox VE MCP Server - exposes cluster management over stdio",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Usage Examples:

  Environment Variables:
    export PROXMOX_HOST=192.168.1.10
    export PROXMOX_USER=root@pam
    export PROXMOX_TOKEN_NAME=mcpserver
    export PROXMOX_TOKEN_VALUE=xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx
    pve-mcp

  Command Line Configuration:
    pve-mcp --host 192.168.1.10 --token-value <secret> --allow-elevated true
        """,
    )

    conn_group = parser.add_argument_group("Proxmox API Connection")
    conn_group.add_argument("--host", help=f"Proxmox host name or IP (default: {DEFAULT_HOST})")
    conn_group.add_argument("--port", type=int, help=f"API port (default: {DEFAULT_PORT})")
    conn_group.add_argument("--user", help=f"User principal owning the token (default: {DEFAULT_USER})")
    conn_group.add_argument("--token-name", help=f"API token ID (default: {DEFAULT_TOKEN_NAME})")
    conn_group.add_argument("--token-value", help="API token secret")
    conn_group.add_argument("--timeout", type=float,
                            help=f"Request timeout in seconds (default: {DEFAULT_TIMEOUT:g})")

    perm_group = parser.add_argument_group("Permissions")
    perm_group.add_argument("--allow-elevated", type=parse_bool,
                            help="Enable node status, command execution and cluster resource usage (true/false)")

    misc_group = parser.add_argument_group("Miscellaneous")
    misc_group.add_argument("--env-file", help="Path to a .env file (default: ./.env)")
    misc_group.add_argument("--log-level", help="Logging level (default: LOG_LEVEL or INFO)")

    return parser


def parse_cli_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_arg_parser().parse_args(argv)
