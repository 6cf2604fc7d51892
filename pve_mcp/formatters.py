"""Text formatting helpers shared by the MCP tools."""

from typing import List, Optional

from mcp.types import TextContent

NA = "N/A"

BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")

NODE_STATUS_ICONS = {"online": "🟢"}
NODE_STATUS_DEFAULT_ICON = "🔴"

GUEST_STATUS_ICONS = {"running": "🟢", "stopped": "🔴"}
GUEST_STATUS_DEFAULT_ICON = "🟡"

GUEST_TYPE_ICONS = {"qemu": "🖥️", "lxc": "📦"}

STORAGE_ENABLED_ICONS = {True: "🟢", False: "🔴"}
STORAGE_ENABLED_LABELS = {True: "Enabled", False: "Disabled"}


def format_uptime(seconds: float) -> str:
    """Render seconds as ``1d 2h 3m``, ``2h 3m`` or ``3m``."""
    seconds = int(seconds)
    days = seconds // 86400
    hours = (seconds % 86400) // 3600
    minutes = (seconds % 3600) // 60

    if days > 0:
        return f"{days}d {hours}h {minutes}m"
    elif hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_bytes(num: float) -> str:
    """Render a byte count with a base-1024 unit, e.g. ``1.5 KB``."""
    if num == 0:
        return "0 B"
    # floor(log1024(num)), clamped to the unit table
    index = 0
    scaled = abs(num)
    while scaled >= 1024 and index < len(BYTE_UNITS) - 1:
        scaled /= 1024
        index += 1
    value = f"{num / (1024 ** index):.2f}".rstrip("0").rstrip(".")
    return f"{value} {BYTE_UNITS[index]}"


def format_percent(part: Optional[float], whole: Optional[float]) -> str:
    """One decimal percentage of ``part`` in ``whole``, or N/A."""
    if part is None or not whole:
        return NA
    return f"{(part / whole) * 100:.1f}%"


def format_cpu(fraction: Optional[float]) -> str:
    if fraction is None:
        return NA
    return f"{fraction * 100:.1f}%"


def format_usage(used: Optional[float], total: Optional[float], with_percent: bool = True) -> str:
    """``used / total (pct%)`` or N/A when either side is unknown."""
    if used is None or not total:
        return NA
    text = f"{format_bytes(used)} / {format_bytes(total)}"
    if with_percent:
        text += f" ({format_percent(used, total)})"
    return text


def format_optional_uptime(seconds: Optional[float]) -> str:
    return format_uptime(seconds) if seconds is not None else NA


def format_optional_bytes(num: Optional[float]) -> str:
    return format_bytes(num) if num is not None else NA


def node_status_icon(status: Optional[str]) -> str:
    return NODE_STATUS_ICONS.get(status, NODE_STATUS_DEFAULT_ICON)


def guest_status_icon(status: Optional[str]) -> str:
    return GUEST_STATUS_ICONS.get(status, GUEST_STATUS_DEFAULT_ICON)


def guest_type_icon(guest_type: Optional[str]) -> str:
    return GUEST_TYPE_ICONS.get(guest_type, GUEST_TYPE_ICONS["lxc"])


class TextBuilder:
    """Accumulates markdown lines for a tool response."""

    def __init__(self, title: Optional[str] = None):
        self.lines: List[str] = []
        if title:
            self.line(title)
            self.blank()

    def line(self, text: str = "") -> "TextBuilder":
        self.lines.append(text)
        return self

    def blank(self) -> "TextBuilder":
        return self.line("")

    def item(self, label: str, value) -> "TextBuilder":
        """Indented bullet used inside list entries."""
        return self.line(f"   • {label}: {value}")

    def field(self, label: str, value) -> "TextBuilder":
        """Top level bullet with a bold label."""
        return self.line(f"• **{label}**: {value}")

    def build(self) -> str:
        return "\n".join(self.lines).rstrip("\n") + "\n"

    def to_content(self) -> List[TextContent]:
        return text_content(self.build())


def text_content(text: str) -> List[TextContent]:
    """Wrap text as an MCP result payload."""
    return [TextContent(type="text", text=text)]
