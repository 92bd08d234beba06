"""
Tool and ToolLink registry contract.

Registries are owned outside the security core; the core only reads
from them. The in-memory implementation backs tests and single-process
deployments.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from .models import ToolConfig, ToolLinkConfig


class ToolRegistryBase(ABC):
    """Abstract base class for Tool configuration lookup."""

    @abstractmethod
    async def get_tool(
        self,
        client_id: str,
    ) -> Optional[ToolConfig]:
        """Get a Tool by client id."""
        pass

    @abstractmethod
    async def get_tool_link(
        self,
        tool_link_id: str,
    ) -> Optional[ToolLinkConfig]:
        """Get a ToolLink by id."""
        pass


class InMemoryToolRegistry(ToolRegistryBase):
    """Registry backed by plain dictionaries."""

    def __init__(self, tools: Iterable[ToolConfig] = (), tool_links: Iterable[ToolLinkConfig] = ()):
        self._tools: Dict[str, ToolConfig] = {tool.client_id: tool for tool in tools}
        self._tool_links: Dict[str, ToolLinkConfig] = {link.id: link for link in tool_links}

    def add_tool(self, tool: ToolConfig):
        self._tools[tool.client_id] = tool

    def add_tool_link(self, tool_link: ToolLinkConfig):
        self._tool_links[tool_link.id] = tool_link

    async def get_tool(self, client_id: str) -> Optional[ToolConfig]:
        if not client_id:
            return None
        return self._tools.get(client_id)

    async def get_tool_link(self, tool_link_id: str) -> Optional[ToolLinkConfig]:
        if not tool_link_id:
            return None
        return self._tool_links.get(tool_link_id)
