"""
ui_inspect — Extract and analyze an application's UI element tree.

Non-destructive: no confirmation required.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from agent_toolbox.mcp_base import CapabilityMode, MCPTool, ToolResult
from agent_toolbox.shell import DEFAULT_TIMEOUT
from agent_toolbox.ui_tree import (
    HierarchyProvider,
    StubHierarchyProvider,
    SystemHierarchyProvider,
    analyze_ui,
    count_elements,
    find_element,
    prune,
    select_properties,
)


class Params(BaseModel):
    """Parameters for ui_inspect."""

    target: str = Field(description="Application name or window title to inspect")
    element_path: str | None = Field(
        default=None,
        description="Slash-separated element id path to focus on (e.g. root/toolbar/btn-file)",
    )
    include_properties: list[str] | None = Field(
        default=None,
        description="Properties to include for each element (id, type and children are always kept)",
    )
    depth: int = Field(default=3, ge=1, description="Maximum depth of the hierarchy to return")


class UIInspectTool(MCPTool[Params]):
    """Inspect UI hierarchy, accessibility and design patterns of an application."""

    name = "ui_inspect"
    description = (
        "Inspect the UI element hierarchy of an application window and analyze it for "
        "accessibility issues, common design patterns and structural performance concerns."
    )
    error_prefix = "UI inspection failed"

    def __init__(
        self,
        capability_mode: CapabilityMode = "real",
        provider: HierarchyProvider | None = None,
        command_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(capability_mode)
        if provider is None:
            provider = (
                StubHierarchyProvider()
                if capability_mode == "stub"
                else SystemHierarchyProvider(command_timeout)
            )
        self.provider = provider

    async def run(self, params: Params) -> ToolResult:
        root = await self.provider.extract(params.target)
        if params.element_path:
            root = find_element(root, params.element_path)
        tree = prune(root, params.depth)

        hierarchy = (
            select_properties(tree, params.include_properties)
            if params.include_properties
            else tree.to_dict()
        )
        return ToolResult.from_json(
            {
                "hierarchy": hierarchy,
                "analysis": analyze_ui(tree),
                "metadata": {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "target": params.target,
                    "element_count": count_elements(tree),
                    "capability_mode": self.capability_mode,
                },
            }
        )
