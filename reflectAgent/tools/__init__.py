"""Tool collections and registries."""

from typing import Iterable, Optional

from .registry import ToolMeta, ToolRegistry
from .builtin import DANGEROUS_TOOLS, SAFE_TOOLS


def build_default_tool_registry(dangerous_tools: Optional[Iterable[str]] = None) -> ToolRegistry:
    """Register the builtin tools with their risk metadata.

    Args:
        dangerous_tools: Names that require approval. None keeps the builtin
            classification (write_file, shell_command, delete_file, http_request).
    """
    if dangerous_tools is None:
        dangerous = {tool.name for tool in DANGEROUS_TOOLS}
    else:
        dangerous = set(dangerous_tools)

    registry = ToolRegistry(dangerous_tools=dangerous)
    for tool in [*SAFE_TOOLS, *DANGEROUS_TOOLS]:
        registry.register_tool(tool)
        risk = "dangerous" if tool.name in dangerous else "safe"
        registry.register_meta(ToolMeta(name=tool.name, risk=risk, tags=["builtin"]))
    return registry


__all__ = ["ToolMeta", "ToolRegistry", "build_default_tool_registry"]
