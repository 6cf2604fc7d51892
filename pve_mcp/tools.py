"""MCP tool catalog, handlers and dispatcher for Proxmox VE.

The catalog returned to the MCP host and the dispatch table are both derived
from ``TOOL_SPECS``.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from mcp.types import TextContent, Tool
from pydantic import ValidationError

from .client import ProxmoxClient, ProxmoxVEError
from .config import ProxmoxConfig
from .formatters import (
    NA,
    STORAGE_ENABLED_ICONS,
    STORAGE_ENABLED_LABELS,
    TextBuilder,
    format_bytes,
    format_cpu,
    format_optional_bytes,
    format_optional_uptime,
    format_percent,
    format_usage,
    guest_status_icon,
    guest_type_icon,
    node_status_icon,
    text_content,
)
from .models import (
    AgentExecResult,
    ClusterStatusEntry,
    Guest,
    NodeStatus,
    NodeSummary,
    Storage,
    parse_list,
    parse_one,
)

logger = logging.getLogger(__name__)

GUEST_TYPES = ("qemu", "lxc")


class UnknownToolError(LookupError):
    """No tool is registered under the requested name"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ToolValidationError(ValueError):
    """Arguments do not satisfy the tool's input schema"""
    pass


@dataclass(frozen=True)
class ToolSpec:
    """Declarative description of one MCP tool.

    ``handler`` names the ``ProxmoxTools`` coroutine executing the tool.
    When ``elevated`` is set and elevated access is disabled, ``gate_message``
    (formatted with the call arguments) is returned instead.
    """

    name: str
    description: str
    input_schema: Dict[str, Any]
    handler: str
    elevated: bool = False
    gate_message: Optional[str] = None

    @property
    def properties(self) -> Dict[str, Any]:
        return self.input_schema.get("properties", {})

    @property
    def required(self) -> Tuple[str, ...]:
        return tuple(self.input_schema.get("required", ()))

    def to_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, inputSchema=self.input_schema)

    def validate(self, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Check required arguments and apply schema defaults.

        Only declared properties are passed on to the handler.
        """
        arguments = arguments or {}
        missing = [key for key in self.required if arguments.get(key) is None]
        if missing:
            raise ToolValidationError(
                f"Missing required argument(s) for {self.name}: {', '.join(missing)}"
            )

        validated = {}
        for key, schema in self.properties.items():
            value = arguments.get(key)
            if value is None:
                value = schema.get("default")
            validated[key] = value
        return validated


NODE_STATUS_GATE = (
    "⚠️  **Node Status Requires Elevated Permissions**\n\n"
    "To view detailed node status, set `PROXMOX_ALLOW_ELEVATED=true` in your .env file "
    "and ensure your API token has Sys.Audit permissions.\n\n"
    "**Current permissions**: Basic (node listing only)"
)

VM_COMMAND_GATE = (
    "⚠️  **VM Command Execution Requires Elevated Permissions**\n\n"
    "To execute commands on VMs, set `PROXMOX_ALLOW_ELEVATED=true` in your .env file "
    "and ensure your API token has appropriate VM permissions.\n\n"
    "**Current permissions**: Basic (VM listing only)\n"
    "**Requested command**: `{command}`"
)

TOOL_SPECS: Tuple[ToolSpec, ...] = (
    ToolSpec(
        name="proxmox_get_nodes",
        description="List all Proxmox cluster nodes with their status and resources",
        input_schema={
            "type": "object",
            "properties": {}
        },
        handler="get_nodes",
    ),
    ToolSpec(
        name="proxmox_get_node_status",
        description="Get detailed status information for a specific Proxmox node",
        input_schema={
            "type": "object",
            "properties": {
                "node": {"type": "string", "description": "Node name (e.g., pve1, proxmox-node2)"}
            },
            "required": ["node"]
        },
        handler="get_node_status",
        elevated=True,
        gate_message=NODE_STATUS_GATE,
    ),
    ToolSpec(
        name="proxmox_get_vms",
        description="List all virtual machines across the cluster with their status",
        input_schema={
            "type": "object",
            "properties": {
                "node": {"type": "string", "description": "Optional: filter by specific node"},
                "type": {"type": "string", "enum": ["qemu", "lxc", "all"], "description": "VM type filter", "default": "all"}
            }
        },
        handler="get_vms",
    ),
    ToolSpec(
        name="proxmox_get_vm_status",
        description="Get detailed status information for a specific VM",
        input_schema={
            "type": "object",
            "properties": {
                "node": {"type": "string", "description": "Node name where VM is located"},
                "vmid": {"type": "string", "description": "VM ID number"},
                "type": {"type": "string", "enum": ["qemu", "lxc"], "description": "VM type", "default": "qemu"}
            },
            "required": ["node", "vmid"]
        },
        handler="get_vm_status",
    ),
    ToolSpec(
        name="proxmox_execute_vm_command",
        description="Execute a shell command on a virtual machine via Proxmox API",
        input_schema={
            "type": "object",
            "properties": {
                "node": {"type": "string", "description": "Node name where VM is located"},
                "vmid": {"type": "string", "description": "VM ID number"},
                "command": {"type": "string", "description": "Shell command to execute"},
                "type": {"type": "string", "enum": ["qemu", "lxc"], "description": "VM type", "default": "qemu"}
            },
            "required": ["node", "vmid", "command"]
        },
        handler="execute_vm_command",
        elevated=True,
        gate_message=VM_COMMAND_GATE,
    ),
    ToolSpec(
        name="proxmox_get_storage",
        description="List all storage pools and their usage across the cluster",
        input_schema={
            "type": "object",
            "properties": {
                "node": {"type": "string", "description": "Optional: filter by specific node"}
            }
        },
        handler="get_storage",
    ),
    ToolSpec(
        name="proxmox_get_cluster_status",
        description="Get overall cluster status including nodes and resource usage",
        input_schema={
            "type": "object",
            "properties": {}
        },
        handler="get_cluster_status",
    ),
)

TOOLS_BY_NAME: Dict[str, ToolSpec] = {spec.name: spec for spec in TOOL_SPECS}


def add_guest_block(builder: TextBuilder, guest: Guest, detailed: bool = False) -> None:
    """Append the description of one guest.

    ``detailed`` selects the single-guest layout, which adds memory
    percentage plus disk and network counters.
    """
    guest_type = guest.guest_type or "qemu"
    builder.line(
        f"{guest_status_icon(guest.status)} {guest_type_icon(guest_type)} "
        f"**{guest.display_name}** (ID: {guest.vmid})"
    )
    if detailed:
        builder.blank()
        add = builder.field
    else:
        add = builder.item

    add("Node", guest.node)
    add("Status", guest.status)
    add("Type", guest_type.upper())

    if guest.running:
        add("Uptime", format_optional_uptime(guest.uptime))
        add("CPU Usage" if detailed else "CPU", format_cpu(guest.cpu))
        add("Memory", format_usage(guest.mem, guest.maxmem, with_percent=detailed))
        if detailed:
            add("Disk Read", format_optional_bytes(guest.diskread))
            add("Disk Write", format_optional_bytes(guest.diskwrite))
            add("Network In", format_optional_bytes(guest.netin))
            add("Network Out", format_optional_bytes(guest.netout))


class ProxmoxTools:
    """Dispatches MCP tool calls to the Proxmox VE API."""

    def __init__(self, config: ProxmoxConfig, client: Optional[ProxmoxClient] = None):
        self.config = config
        self.client = client or ProxmoxClient(config)

    @property
    def allow_elevated(self) -> bool:
        return self.config.allow_elevated

    async def aclose(self):
        await self.client.aclose()

    def list_tools(self) -> List[Tool]:
        return [spec.to_tool() for spec in TOOL_SPECS]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        """Run a tool and always return a text payload, never raise."""
        try:
            spec = TOOLS_BY_NAME.get(name)
            if spec is None:
                raise UnknownToolError(name)

            args = spec.validate(arguments)

            if spec.elevated and not self.allow_elevated:
                logger.info(f"Tool {name} requires elevated access, which is disabled")
                return text_content(spec.gate_message.format(**args))

            logger.debug(f"Executing tool {name} with {args}")
            handler = getattr(self, spec.handler)
            return await handler(**args)

        except Exception as e:
            logger.error(f"Tool {name} failed: {e}")
            return text_content(f"Error: {e}")

    # Nodes

    async def _list_nodes(self) -> List[NodeSummary]:
        return parse_list(NodeSummary, await self.client.get("/nodes"))

    async def get_nodes(self) -> List[TextContent]:
        nodes = await self._list_nodes()

        out = TextBuilder("🖥️  **Proxmox Cluster Nodes**")
        for node in nodes:
            load = f"{node.loadavg[0]:.2f}" if node.loadavg else NA
            out.line(f"{node_status_icon(node.status)} **{node.node}**")
            out.item("Status", node.status)
            out.item("Uptime", format_optional_uptime(node.uptime))
            out.item("CPU", format_cpu(node.cpu))
            out.item("Memory", format_usage(node.mem, node.maxmem))
            out.item("Load", load)
            out.blank()

        return out.to_content()

    async def get_node_status(self, node: str) -> List[TextContent]:
        status = parse_one(NodeStatus, await self.client.get(f"/nodes/{node}/status"))
        memory = status.memory
        rootfs = status.rootfs

        out = TextBuilder(f"🖥️  **Node {node} Status**")
        out.field("Status", "🟢 Online" if status.uptime else "🔴 Offline")
        out.field("Uptime", format_optional_uptime(status.uptime))
        out.field("Load Average", ", ".join(f"{v:.2f}" for v in status.loadavg) if status.loadavg else NA)
        out.field("CPU Usage", format_cpu(status.cpu))
        out.field("Memory", format_usage(memory.used, memory.total) if memory else NA)
        out.field("Root Disk", format_usage(rootfs.used, rootfs.total) if rootfs else NA)
        return out.to_content()

    # Guests

    async def _node_guests(self, node: str, type_filter: str) -> List[Guest]:
        guests: List[Guest] = []
        for guest_type in GUEST_TYPES:
            if type_filter in ("all", guest_type):
                data = await self.client.get(f"/nodes/{node}/{guest_type}")
                guests.extend(parse_list(Guest, data, type=guest_type, node=node))
        return guests

    async def get_vms(self, node: Optional[str] = None, type: str = "all") -> List[TextContent]:
        type_filter = type or "all"
        guests: List[Guest] = []

        if node:
            guests.extend(await self._node_guests(node, type_filter))
        else:
            for node_info in await self._list_nodes():
                guests.extend(await self._node_guests(node_info.node, type_filter))

        out = TextBuilder("💻 **Virtual Machines**")
        if not guests:
            out.line("No virtual machines found.")
        else:
            for guest in sorted(guests, key=lambda g: g.vmid or 0):
                add_guest_block(out, guest)
                out.blank()

        return out.to_content()

    async def get_vm_status(self, node: str, vmid: str, type: str = "qemu") -> List[TextContent]:
        guest_type = type or "qemu"
        data = await self.client.get(f"/nodes/{node}/{guest_type}/{vmid}/status/current")
        guest = parse_one(Guest, data, vmid=vmid, node=node, type=guest_type)

        out = TextBuilder()
        add_guest_block(out, guest, detailed=True)
        return out.to_content()

    async def execute_vm_command(self, node: str, vmid: str, command: str,
                                 type: str = "qemu") -> List[TextContent]:
        guest_type = type or "qemu"
        try:
            if guest_type == "qemu":
                # The guest agent runs the command asynchronously; only the pid comes back
                data = await self.client.post(f"/nodes/{node}/qemu/{vmid}/agent/exec", {"command": command})
                result = parse_one(AgentExecResult, data)

                out = TextBuilder(f"💻 **Command executed on VM {vmid}**")
                out.line(f"**Command**: `{command}`")
                out.line("**Result**: Command submitted to guest agent")
                out.line(f"**PID**: {result.pid if result.pid is not None else NA}")
                out.blank()
                out.line("*Note: Use guest agent status to check command completion*")
                return out.to_content()

            data = await self.client.post(f"/nodes/{node}/lxc/{vmid}/exec", {"command": command})
            if data is None or data == "":
                output = "Command executed successfully"
            elif isinstance(data, str):
                output = data
            else:
                output = json.dumps(data, indent=2, ensure_ascii=False)

            out = TextBuilder(f"📦 **Command executed on LXC {vmid}**")
            out.line(f"**Command**: `{command}`")
            out.line("**Output**:")
            out.line("```")
            out.line(output)
            out.line("```")
            return out.to_content()

        except Exception as e:
            logger.error(f"Command execution on {guest_type} {vmid} failed: {e}")
            return text_content(
                f"❌ **Failed to execute command on VM {vmid}**\n\n"
                f"Error: {e}\n\n"
                f"*Note: Make sure the VM has guest agent installed and running*"
            )

    # Storage

    async def get_storage(self, node: Optional[str] = None) -> List[TextContent]:
        storages: List[Storage] = []

        if node:
            storages.extend(parse_list(Storage, await self.client.get(f"/nodes/{node}/storage"), node=node))
        else:
            for node_info in await self._list_nodes():
                data = await self.client.get(f"/nodes/{node_info.node}/storage")
                storages.extend(parse_list(Storage, data, node=node_info.node))

        out = TextBuilder("💾 **Storage Pools**")
        if not storages:
            out.line("No storage found.")
            return out.to_content()

        unique: Dict[Tuple[Optional[str], Optional[str]], Storage] = {}
        for storage in storages:
            unique.setdefault((storage.storage, storage.node), storage)

        for storage in sorted(unique.values(), key=lambda s: s.storage or ""):
            enabled = bool(storage.enabled)
            out.line(f"{STORAGE_ENABLED_ICONS[enabled]} **{storage.storage}**")
            out.item("Node", storage.node)
            out.item("Type", storage.type or NA)
            out.item("Content", storage.content or NA)
            if storage.used and storage.total:
                out.item("Usage", format_usage(storage.used, storage.total))
            out.item("Status", STORAGE_ENABLED_LABELS[enabled])
            out.blank()

        return out.to_content()

    # Cluster

    async def _cluster_entry(self) -> Optional[ClusterStatusEntry]:
        """Best effort ``/cluster/status`` lookup; standalone nodes have no cluster row."""
        try:
            entries = parse_list(ClusterStatusEntry, await self.client.get("/cluster/status"))
        except (ProxmoxVEError, ValidationError) as e:
            logger.debug(f"Cluster status unavailable: {e}")
            return None
        return next((entry for entry in entries if entry.type == "cluster"), None)

    async def get_cluster_status(self) -> List[TextContent]:
        try:
            nodes = await self._list_nodes()
            cluster = await self._cluster_entry() if self.allow_elevated else None

            online = [n for n in nodes if n.online]
            healthy = len(online) == len(nodes)

            out = TextBuilder("🏗️  **Proxmox Cluster Status**")
            if cluster and cluster.name:
                quorum = "✅ Quorate" if cluster.quorate else "⚠️ No quorum"
                out.line(f"**Cluster**: {cluster.name} ({quorum})")
            out.line(f"**Cluster Health**: {'🟢 Healthy' if healthy else '🟡 Warning'}")
            out.line(f"**Nodes**: {len(online)}/{len(nodes)} online")
            out.blank()

            if self.allow_elevated:
                total_cpu = sum(n.maxcpu or 0 for n in online)
                used_cpu = sum((n.cpu or 0) * (n.maxcpu or 0) for n in online)
                total_mem = sum(n.maxmem or 0 for n in online)
                used_mem = sum(n.mem or 0 for n in online)

                out.line("**Resource Usage**:")
                out.line(f"• CPU: {format_percent(used_cpu, total_cpu)} ({used_cpu:.1f}/{total_cpu} cores)")
                out.line(f"• Memory: {format_percent(used_mem, total_mem)} "
                         f"({format_bytes(used_mem)}/{format_bytes(total_mem)})")
            else:
                out.line("⚠️  **Limited Information**: Resource usage requires elevated permissions")
            out.blank()

            out.line("**Node Details**:")
            for node in sorted(nodes, key=lambda n: n.node or ""):
                out.line(f"{node_status_icon(node.status)} {node.node} - {node.status}")

            return out.to_content()

        except Exception as e:
            logger.error(f"Cluster status failed: {e}")
            return text_content(f"❌ **Failed to get cluster status**\n\nError: {e}")
