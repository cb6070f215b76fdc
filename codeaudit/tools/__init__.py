"""
External tool layer: static registry, discovery, execution and output parsers.
"""

from codeaudit.tools.registry import TOOL_REGISTRY, ToolDescriptor, get_tool_by_id, get_tools_by_category
from codeaudit.tools.runner import (
    ToolAvailability,
    ExecutionMeta,
    MissingTool,
    ToolRunResult,
    discover_tools,
    get_tools_for_category,
    run_tool,
    run_tools,
    get_missing_tools,
)

__all__ = [
    'TOOL_REGISTRY',
    'ToolDescriptor',
    'get_tool_by_id',
    'get_tools_by_category',
    'ToolAvailability',
    'ExecutionMeta',
    'MissingTool',
    'ToolRunResult',
    'discover_tools',
    'get_tools_for_category',
    'run_tool',
    'run_tools',
    'get_missing_tools',
]
