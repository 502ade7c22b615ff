from __future__ import annotations

import structlog

from src.tools.base import RegisteredTool, ToolDefinition, ToolHandler

logger = structlog.get_logger()


class ToolRegistry:
    """Ordered registry of tools for one logical server.

    The same mapping backs listing and dispatch routing, so a listed tool
    always has a handler and an unlisted name is never routable.
    """

    def __init__(self, server_name: str = "default") -> None:
        self._server_name = server_name
        self._tools: dict[str, RegisteredTool] = {}
        self._sealed = False

    @property
    def server_name(self) -> str:
        return self._server_name

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        """Register a tool. Raises ValueError if name already registered."""
        if self._sealed:
            raise RuntimeError(
                f"Registry '{self._server_name}' is sealed; cannot register {definition.name}"
            )
        if definition.name in self._tools:
            raise ValueError(f"Tool already registered: {definition.name}")
        self._tools[definition.name] = RegisteredTool(definition=definition, handler=handler)
        logger.debug("tool_registered", server=self._server_name, tool_name=definition.name)

    def seal(self) -> None:
        """Freeze the tool set. Called once the owning server is built."""
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, name: str) -> RegisteredTool | None:
        """Get a tool by name. Returns None if not found."""
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def list(self) -> list[ToolDefinition]:
        """Return tool definitions in registration order."""
        return [tool.definition for tool in self._tools.values()]

    def list_tools_payload(self) -> list[dict]:
        """Return tools in listing wire format.

        Output format:
        [{"name": ..., "description": ..., "inputSchema": ...}]
        """
        return [definition.to_wire() for definition in self.list()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
