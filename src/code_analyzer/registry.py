# registry.py
# Tool registry and dispatcher. The only path to side effects.
#
# Dispatch order for every call:
#   lookup → schema validation → operator confirmation → execute → format
#
# Every outcome, success or failure, is normalized into one Observation
# string tagged with the tool name. Nothing raised by a tool escapes
# execute_tool().

import json
import logging
import os
from collections.abc import Callable, Iterable
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from code_analyzer import display
from code_analyzer.context import ExecutionContext

logger = logging.getLogger(__name__)

Confirm = Callable[[str, dict], bool]


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ToolError(Exception):
    """Raised by a tool executor. `details` are serialized into the Observation."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.details}


# ---------------------------------------------------------------------------
# Tool interface
# ---------------------------------------------------------------------------


class Tool:
    """
    Base class for every capability the oracle may request.

    Subclasses set `name`, `description` and `input_model` (a pydantic model
    whose JSON schema is advertised to the oracle) and implement execute().
    format() shapes the raw result for the Observation and may print a
    status line.
    """

    name: str = ""
    description: str = ""
    input_model: type[BaseModel]
    requires_confirmation: bool = False

    def execute(self, args: BaseModel, context: ExecutionContext) -> Any:
        raise NotImplementedError(f"Tool '{self.name}' must implement execute()")

    def format(self, result: Any) -> Any:
        return result

    def schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.input_model.model_json_schema(),
        }


# ---------------------------------------------------------------------------
# Tool arguments
# ---------------------------------------------------------------------------


class ToolArgs(BaseModel):
    """Base for every tool's input model. Unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid")


def resolve_path(path: str, context: ExecutionContext) -> str:
    """Expand `~` and anchor relative paths at the context's working directory."""
    expanded = os.path.expanduser(path)
    if os.path.isabs(expanded):
        return expanded
    return os.path.normpath(os.path.join(context.current_directory, expanded))


# ---------------------------------------------------------------------------
# Observation helpers
# ---------------------------------------------------------------------------


def _serialize(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def _validation_summary(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{location}: {err['msg']}")
    return "; ".join(parts)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """
    Static name → Tool table plus the dispatcher.

    The table is fixed at construction. `confirm(name, args)` is asked before
    any tool with requires_confirmation runs; it defaults to an operator
    prompt that answers "no" unless told otherwise.
    """

    def __init__(
        self,
        tools: Iterable[Tool],
        context: ExecutionContext,
        confirm: Confirm | None = None,
    ) -> None:
        table: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in table:
                raise ValueError(f"Tool '{tool.name}' is already registered")
            table[tool.name] = tool
        self._tools = MappingProxyType(table)
        self._context = context
        self._confirm = confirm or display.confirm_action

    @property
    def tools(self) -> MappingProxyType:
        return self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def get_function_schemas(self) -> list[dict[str, Any]]:
        """The capability manifest presented to the oracle."""
        return [tool.schema() for tool in self._tools.values()]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def execute_tool(self, name: str, args: Any, record: bool = True) -> str:
        """
        Run one tool call and return its Observation.

        With `record` set, the Observation is also appended to the context
        as a user message before returning.
        """
        observation = self._dispatch(name, args)
        if record:
            self._context.add_message("user", observation)
        return observation

    def _dispatch(self, name: str, args: Any) -> str:
        tool = self._tools.get(name)
        if tool is None:
            display.tool_not_found(name)
            logger.warning("Oracle requested unknown tool %r", name)
            return f"Unknown tool: {name}. Available tools: {', '.join(self._tools)}"

        try:
            validated = tool.input_model.model_validate(args if args is not None else {})
        except ValidationError as exc:
            summary = _validation_summary(exc)
            display.tool_invalid_arguments(name, summary)
            return f"{name} INVALID ARGUMENTS: {summary}"

        if tool.requires_confirmation:
            approved = self._ask_confirmation(name, validated.model_dump())
            if not approved:
                display.tool_declined(name)
                return (
                    f"{name} ABORTED: The operator declined to run this action. "
                    "Do not retry it unchanged; choose a different approach."
                )

        try:
            raw = tool.execute(validated, self._context)
            formatted = tool.format(raw)
        except ToolError as exc:
            display.tool_failed(name, exc.message)
            return f"{name} ERROR: {_serialize(exc.payload())}"
        except Exception as exc:
            logger.debug("Tool %s raised", name, exc_info=True)
            display.tool_failed(name, str(exc))
            return f"{name} ERROR: {_serialize({'error': str(exc), 'type': type(exc).__name__})}"

        return f"{name} RESULT: {_serialize(formatted)}"

    def _ask_confirmation(self, name: str, args: dict) -> bool:
        try:
            return bool(self._confirm(name, args))
        except (EOFError, KeyboardInterrupt):
            return False
        except Exception:
            logger.warning("Confirmation prompt for %s failed; treating as declined", name, exc_info=True)
            return False
