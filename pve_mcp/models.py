"""Pydantic models for the Proxmox VE API responses used by the tools.

Every field is optional: Proxmox omits values depending on resource state
and token permissions, and the formatters render missing values as ``N/A``.
Unknown fields are ignored and numbers in string fields are kept as text,
since the API encodes some values either way.
"""

from typing import Any, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

ModelT = TypeVar("ModelT", bound=BaseModel)


class ProxmoxModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


class NodeSummary(ProxmoxModel):
    """Entry of ``GET /nodes``."""
    node: Optional[str] = None
    status: Optional[str] = None
    uptime: Optional[float] = None
    cpu: Optional[float] = None
    maxcpu: Optional[int] = None
    mem: Optional[float] = None
    maxmem: Optional[float] = None
    loadavg: Optional[List[float]] = None

    @property
    def online(self) -> bool:
        return self.status == "online"


class UsageCounter(ProxmoxModel):
    used: Optional[float] = None
    total: Optional[float] = None


class NodeStatus(ProxmoxModel):
    """Response of ``GET /nodes/{node}/status``."""
    uptime: Optional[float] = None
    cpu: Optional[float] = None
    loadavg: Optional[List[float]] = None
    memory: Optional[UsageCounter] = None
    rootfs: Optional[UsageCounter] = None


class Guest(ProxmoxModel):
    """A QEMU VM or LXC container, from a listing or ``status/current``."""
    vmid: Optional[int] = None
    name: Optional[str] = None
    status: Optional[str] = None
    guest_type: Optional[str] = Field(default=None, alias="type")
    node: Optional[str] = None
    uptime: Optional[float] = None
    cpu: Optional[float] = None
    mem: Optional[float] = None
    maxmem: Optional[float] = None
    diskread: Optional[float] = None
    diskwrite: Optional[float] = None
    netin: Optional[float] = None
    netout: Optional[float] = None

    @property
    def display_name(self) -> str:
        return self.name or f"VM-{self.vmid}"

    @property
    def running(self) -> bool:
        return self.status == "running"


class Storage(ProxmoxModel):
    """Entry of ``GET /nodes/{node}/storage``."""
    storage: Optional[str] = None
    node: Optional[str] = None
    type: Optional[str] = None
    content: Optional[str] = None
    enabled: Optional[bool] = None
    used: Optional[float] = None
    total: Optional[float] = None


class ClusterStatusEntry(ProxmoxModel):
    """Entry of ``GET /cluster/status`` (one ``cluster`` row plus one per node)."""
    type: Optional[str] = None
    name: Optional[str] = None
    quorate: Optional[bool] = None
    nodes: Optional[int] = None


class AgentExecResult(ProxmoxModel):
    """Response of ``POST /nodes/{node}/qemu/{vmid}/agent/exec``."""
    pid: Optional[int] = None


def parse_list(model: Type[ModelT], data: Any, **extra: Any) -> List[ModelT]:
    """Validate a list payload, tolerating ``None`` and non-dict entries."""
    items: Iterable[Any] = data if isinstance(data, list) else []
    return [model.model_validate({**item, **extra}) for item in items if isinstance(item, dict)]


def parse_one(model: Type[ModelT], data: Any, **extra: Any) -> ModelT:
    return model.model_validate({**(data if isinstance(data, dict) else {}), **extra})
