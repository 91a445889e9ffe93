"""
Tool registry: name -> (description, argument model, handler).

Assembles the declarations from tool_schemas and the handlers from
tool_handlers into one dispatch table. ``validate()`` runs at startup so a
declared tool without a handler (or the reverse) stops the app from booting.
"""
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from clinic_scheduler.core.errors import SchedulingError, StoreFailure
from clinic_scheduler.services.appointment_service import invalid_input_from
from clinic_scheduler.services.tool_handlers import HANDLERS, ToolContext
from clinic_scheduler.services.tool_schemas import TOOL_DECLARATIONS, function_declaration

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Não foi possível concluir a operação. Tente novamente em instantes."

Handler = Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: type[BaseModel]
    handler: Handler


class ToolRegistry:
    def __init__(
        self,
        declarations: Mapping[str, tuple[str, type[BaseModel]]],
        handlers: Mapping[str, Handler],
    ):
        self._declarations = dict(declarations)
        self._handlers = dict(handlers)
        self._tools: dict[str, ToolSpec] = {}

    def validate(self) -> None:
        """Fail fast when declarations and handlers disagree."""
        missing = sorted(set(self._declarations) - set(self._handlers))
        orphans = sorted(set(self._handlers) - set(self._declarations))
        if missing or orphans:
            raise RuntimeError(
                f"Tool registry mismatch: declared without handler={missing}, handler without declaration={orphans}"
            )
        self._tools = {
            name: ToolSpec(name, description, model, self._handlers[name])
            for name, (description, model) in self._declarations.items()
        }
        logger.info("Tool registry ready: %d tools", len(self._tools))

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def declarations(self) -> list[dict]:
        return [function_declaration(name) for name in self._tools]

    async def invoke(self, name: str, raw_args: Mapping[str, Any] | None, ctx: ToolContext) -> dict[str, Any]:
        """Validate arguments, run the handler and fold failures into ``{ok: false, message}``.

        ``name`` must be a registered tool; callers check membership first.
        """
        tool = self._tools[name]
        try:
            args = tool.args_model.model_validate(dict(raw_args or {}))
            result = await tool.handler(args, ctx)
        except ValidationError as e:
            err = invalid_input_from(e)
            logger.info("[Tool] %s rejected arguments: %s", name, e.errors()[:1])
            return {"ok": False, "message": err.user_message}
        except StoreFailure as e:
            logger.error("[Tool] %s store failure: %s", name, e.detail or e)
            return {"ok": False, "message": e.user_message}
        except SchedulingError as e:
            logger.info("[Tool] %s ok=False (%s)", name, type(e).__name__)
            return {"ok": False, "message": e.user_message}
        except Exception as e:
            logger.exception("[Tool] %s failed: %s", name, e)
            return {"ok": False, "message": GENERIC_FAILURE}
        logger.info("[Tool] %s ok=%s", name, result.get("ok"))
        return result


def build_registry() -> ToolRegistry:
    registry = ToolRegistry(TOOL_DECLARATIONS, HANDLERS)
    registry.validate()
    return registry
