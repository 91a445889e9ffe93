from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status

from clinic_scheduler.api.deps import get_registry, get_tool_context
from clinic_scheduler.services.tool_handlers import ToolContext
from clinic_scheduler.services.tools import ToolRegistry

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get("")
async def list_tools(registry: ToolRegistry = Depends(get_registry)) -> list[dict]:
    """Function declarations for the dialogue driver's language model."""
    return registry.declarations()


@router.post("/{name}")
async def call_tool(
    name: str,
    arguments: dict[str, Any] | None = Body(default=None),
    registry: ToolRegistry = Depends(get_registry),
    ctx: ToolContext = Depends(get_tool_context),
) -> dict[str, Any]:
    """Run one tool call. Failures come back as 200 with ``ok: false``."""
    if name not in registry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown tool: {name}")
    return await registry.invoke(name, arguments, ctx)
