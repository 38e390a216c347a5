# =============================================================================
# Expert Tools — Function Definitions and Call Validation
# =============================================================================
#
# The tool-routed orchestrator is registered with one function tool per
# domain expert. Each tool takes a single required string argument, `query`.
#
# Incoming tool calls carry loosely-typed JSON arguments. They are validated
# against ExpertToolArgs before any expert is invoked; unknown tool names
# and malformed arguments raise ToolDispatchError, which the orchestrator
# turns into that call's output text rather than failing the run.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ragagent.services.agent_client import ToolCallRequest

SOP_EXPERT = "SOP Agent"
POLICY_EXPERT = "Policy Agent"


class ToolDispatchError(ValueError):
    """A tool call could not be mapped to an expert."""


class ExpertToolArgs(BaseModel):
    """Arguments accepted by every expert tool."""

    model_config = ConfigDict(extra="ignore")

    query: str = Field(..., min_length=1)


@dataclass(frozen=True)
class ExpertTool:
    """A callable tool that forwards a query to one expert persona."""

    function_name: str
    expert_name: str
    description: str

    def definition(self) -> dict[str, Any]:
        """Function tool definition in Assistants API format."""
        return {
            "type": "function",
            "function": {
                "name": self.function_name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "The question to forward to the expert.",
                        },
                    },
                    "required": ["query"],
                },
            },
        }


EXPERT_TOOLS: dict[str, ExpertTool] = {
    tool.function_name: tool
    for tool in (
        ExpertTool(
            function_name="ask_sop_agent",
            expert_name=SOP_EXPERT,
            description=(
                "Ask the SOP expert about standard operating procedures, "
                "step-by-step processes and operational guidelines."
            ),
        ),
        ExpertTool(
            function_name="ask_policy_agent",
            expert_name=POLICY_EXPERT,
            description=(
                "Ask the Policy expert about company policies, regulations, "
                "compliance requirements and governance."
            ),
        ),
    )
}


def tool_definitions() -> tuple[dict[str, Any], ...]:
    return tuple(tool.definition() for tool in EXPERT_TOOLS.values())


def parse_tool_call(call: ToolCallRequest) -> tuple[ExpertTool, str]:
    """
    Validate a tool call and return the target tool plus its query.

    Raises:
        ToolDispatchError: Unknown function name or invalid arguments.
    """
    tool = EXPERT_TOOLS.get(call.function_name)
    if tool is None:
        raise ToolDispatchError(f"Unknown tool '{call.function_name}'")

    try:
        args = ExpertToolArgs.model_validate_json(call.arguments or "{}")
    except ValidationError as e:
        raise ToolDispatchError(
            f"Invalid arguments for tool '{call.function_name}': "
            f"{e.error_count()} validation error(s)"
        ) from e

    return tool, args.query
