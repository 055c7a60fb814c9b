"""Tool registry: the closed set of capabilities the agent may invoke.

Each entry wraps a LangChain ``@tool``.  The tool's pydantic ``args_schema``
is the declared parameter shape: it is exported as JSON schema for the model
request, and every invocation is validated against it before the tool runs.
Arguments are always passed by declared parameter name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import ValidationError as PydanticValidationError

from helpdesk.errors import DuplicateToolError, InvalidToolArgumentsError, UnknownToolError
from helpdesk.tools.accounts import get_account
from helpdesk.tools.escalation import escalate_to_human
from helpdesk.tools.knowledge_base import search_kb

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolDescriptor:
    """Name, prompt description, JSON parameter schema and the executable tool."""

    name: str
    description: str
    parameters: dict[str, Any]
    tool: BaseTool = field(repr=False, compare=False)

    @classmethod
    def from_tool(cls, tool: BaseTool) -> ToolDescriptor:
        spec = convert_to_openai_tool(tool)["function"]
        return cls(
            name=spec["name"],
            description=spec.get("description", ""),
            parameters=spec.get("parameters", {"type": "object", "properties": {}}),
            tool=tool,
        )

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))


class ToolRegistry:
    """Maps tool names to descriptors; registration order is preserved."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            raise DuplicateToolError(f"Tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = descriptor
        logger.debug("Registered tool %s", descriptor.name)

    def describe(self) -> list[ToolDescriptor]:
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def invoke(self, name: str, arguments: dict[str, Any]) -> str:
        """Run tool *name* with *arguments* and return its text result.

        Raises ``UnknownToolError`` if no such tool is registered and
        ``InvalidToolArgumentsError`` if the arguments do not match the
        tool's declared parameters.  Exceptions raised by the tool itself
        propagate unchanged.
        """
        descriptor = self._tools.get(name)
        if descriptor is None:
            raise UnknownToolError(f"Unknown tool: {name}")

        try:
            result = descriptor.tool.invoke(dict(arguments))
        except PydanticValidationError as exc:
            raise InvalidToolArgumentsError(
                f"Invalid arguments for {name}: {exc.error_count()} error(s)"
            ) from exc
        return result if isinstance(result, str) else str(result)


def default_registry() -> ToolRegistry:
    """Registry with the three customer-support tools."""
    registry = ToolRegistry()
    for tool in (search_kb, get_account, escalate_to_human):
        registry.register(ToolDescriptor.from_tool(tool))
    return registry
