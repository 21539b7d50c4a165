"""Tool operations layer"""

from .handler import ToolError, ToolErrorPayload, ToolResponse, WorkbookTools, error_code

__all__ = [
    "ToolError",
    "ToolErrorPayload",
    "ToolResponse",
    "WorkbookTools",
    "error_code",
]
