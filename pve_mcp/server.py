#!/usr/bin/env python3
"""
Proxmox VE MCP Server entry point.

Registers the tool catalog and the tool dispatcher with an MCP ``Server`` and
serves it over stdio.

Configuration (Priority: CLI Args > Environment Variables > .env > Defaults):
   PROXMOX_HOST            Proxmox host name or IP
   PROXMOX_PORT            API port (default: 8006)
   PROXMOX_USER            User principal owning the token (default: root@pam)
   PROXMOX_TOKEN_NAME      API token ID (default: mcpserver)
   PROXMOX_TOKEN_VALUE     API token secret
   PROXMOX_ALLOW_ELEVATED  Enable elevated tools (default: false)
   PROXMOX_TIMEOUT         Request timeout in seconds (default: 30)
   LOG_LEVEL               Logging level (default: INFO)

Usage:
pve-mcp --help
"""

import asyncio
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Sequence

import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server

from . import __version__
from .config import ProxmoxConfig, load_env_file, parse_cli_arguments
from .tools import ProxmoxTools

SERVER_NAME = "proxmox-mcp"

logger = logging.getLogger("pve-mcp-server")


def configure_logging(level_name: Optional[str] = None) -> None:
    """Log to stderr; stdout carries the MCP stdio transport."""
    level_name = (level_name or os.environ.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
        force=True,
    )


def create_server(tools: ProxmoxTools) -> Server:
    """Build the MCP server around a tool dispatcher."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> List[types.Tool]:
        """List all available tools"""
        return tools.list_tools()

    # Arguments are checked by the dispatcher so failures keep the "Error:" payload shape
    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
        """Handle tool calls; errors come back as text payloads"""
        return await tools.call_tool(name, arguments)

    return server


async def serve(config: ProxmoxConfig) -> None:
    tools = ProxmoxTools(config)
    server = create_server(tools)

    logger.info(f"Proxmox VE MCP Server v{__version__} starting...")
    logger.info(f"Host: {config.base_url}")
    logger.info(f"Auth: API Token {config.user}!{config.token_name}")
    logger.info(f"Elevated access: {'enabled' if config.allow_elevated else 'disabled'}")
    logger.info(f"Features: {len(tools.list_tools())} tools available")

    try:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("Proxmox MCP server running on stdio")
            await server.run(
                read_stream,
                write_stream,
                InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    )
                )
            )
    finally:
        await tools.aclose()


def run(argv: Optional[Sequence[str]] = None) -> None:
    """Console script entry point."""
    args = parse_cli_arguments(argv)
    load_env_file(args.env_file)
    configure_logging(args.log_level)

    try:
        config = ProxmoxConfig.from_env(cli_args=args)
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception as e:
        logger.critical(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
