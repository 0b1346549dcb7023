"""Tool metadata management and registration."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from langchain_core.tools import BaseTool

from reflectAgent.utils.error_handler import ToolExecutionError
from reflectAgent.utils.logging_utils import log_tool_call, log_tool_result

LOGGER = logging.getLogger("reflectAgent.tools")


@dataclass(frozen=True, slots=True)
class ToolMeta:
    """Describes governance attributes for a tool."""

    name: str
    risk: str  # safe | dangerous
    tags: List[str] = field(default_factory=list)


class ToolRegistry:
    """Tracks tool instances, governance metadata and the dangerous-tool policy.

    A tool is dangerous when its name appears in the configured dangerous list
    or when its metadata declares ``risk="dangerous"``. The classification is
    static: it never depends on the arguments of a particular call.
    """

    def __init__(
        self,
        tools: Optional[Iterable[BaseTool]] = None,
        meta: Optional[Iterable[ToolMeta]] = None,
        dangerous_tools: Optional[Iterable[str]] = None,
    ) -> None:
        self._tools: Dict[str, BaseTool] = {}
        self._meta: Dict[str, ToolMeta] = {}
        self._dangerous: set[str] = set(dangerous_tools or [])
        if tools:
            for tool in tools:
                self.register_tool(tool)
        if meta:
            for item in meta:
                self.register_meta(item)

    def register_tool(self, tool: BaseTool) -> None:
        self._tools[tool.name] = tool

    def register_meta(self, metadata: ToolMeta) -> None:
        self._meta[metadata.name] = metadata

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> List[BaseTool]:
        return list(self._tools.values())

    def tool_names(self) -> List[str]:
        return list(self._tools.keys())

    def is_dangerous(self, name: str) -> bool:
        if name in self._dangerous:
            return True
        meta = self._meta.get(name)
        return bool(meta and meta.risk == "dangerous")

    def describe(self) -> str:
        """Return one line per tool for inclusion in prompts."""

        lines = []
        for tool in self._tools.values():
            marker = " (requires approval)" if self.is_dangerous(tool.name) else ""
            description = (tool.description or "").strip().splitlines()
            summary = description[0] if description else ""
            lines.append(f"- {tool.name}{marker}: {summary}")
        return "\n".join(lines) if lines else "No tools available."

    async def invoke(self, name: str, args: Dict[str, Any], timeout: Optional[float] = None) -> str:
        """Run a tool and return its output as text.

        Raises:
            ToolExecutionError: Unknown tool, invalid arguments, timeout or tool failure
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolExecutionError(f"Tool not found: {name}")

        log_tool_call(LOGGER, name, args)
        try:
            if timeout:
                result = await asyncio.wait_for(tool.ainvoke(args), timeout=timeout)
            else:
                result = await tool.ainvoke(args)
        except asyncio.TimeoutError as e:
            log_tool_result(LOGGER, name, "timeout", success=False)
            raise ToolExecutionError(
                f"Tool {name} timed out after {timeout}s",
                f"{name} timed out after {timeout:g} seconds",
            ) from e
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_tool_result(LOGGER, name, e, success=False)
            raise ToolExecutionError(f"Tool {name} failed: {e}", f"{name} failed: {e}") from e

        text = result if isinstance(result, str) else str(result)
        log_tool_result(LOGGER, name, text, success=True)
        return text
