"""Tools listing endpoint.

Shows what the model is offered: the instructions gathered from every
backend and the namespaced tool definitions.
"""

import logging

import ollama
from fastapi import APIRouter, Depends, Query

from tooldeck.dependencies import get_toolset
from tooldeck.models.tools import ToolInfo, ToolListResponse, parameters_from_schema
from tooldeck.tools import ToolSet

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


def tool_info(tool: ollama.Tool, detailed: bool = False) -> ToolInfo:
    function = tool.function
    info = ToolInfo(name=function.name or "", description=function.description or "")
    if detailed and function.parameters is not None:
        info.parameters = parameters_from_schema(
            function.parameters.model_dump(exclude_none=True)
        )
    return info


def list_tools_response(toolset: ToolSet, detailed: bool = False) -> ToolListResponse:
    return ToolListResponse(
        instructions=[message.content for message in toolset.instructions()],
        tools=[tool_info(tool, detailed) for tool in toolset.definitions()],
        discovery_errors=[str(e) for e in toolset.discovery_errors],
    )


@router.get("", response_model=ToolListResponse)
async def list_tools(
    detailed: bool = Query(default=False, description="Include parameter details"),
    toolset: ToolSet = Depends(get_toolset),
) -> ToolListResponse:
    """List the instructions and tool definitions offered to the model."""
    response = list_tools_response(toolset, detailed)
    logger.debug(f"Listing {len(response.tools)} tools")
    return response
