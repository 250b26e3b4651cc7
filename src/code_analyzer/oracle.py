# oracle.py
# The language-model boundary.
#
# Oracle wraps an OpenAI-compatible chat client and returns a provider-neutral
# Completion. All response-shape sniffing lives in the parse_* adapters below,
# so the agent loop only ever sees ParsedAction | None and Thought.

import json
import logging
import re
from typing import Any

from openai import OpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from code_analyzer.config import Settings
from code_analyzer.models import ParsedAction, Thought

logger = logging.getLogger(__name__)

# Accepts the stop phrases the prompts ask for plus common wording drift.
SENTINEL_RE = re.compile(
    r"@\s*(?:stop\s+execution|current\s+plan\s+(?:is\s+)?finished|plan\s+(?:is\s+)?(?:finished|complete(?:d)?))\s*@",
    re.IGNORECASE,
)
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class OracleError(Exception):
    """Transport failure, or an empty response where text was required."""


class ActionParseError(OracleError):
    """A tool call was returned but its arguments are not a JSON object."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class Completion(BaseModel):
    content: str | None = None
    tool_calls: list[dict[str, Any]] = Field(default_factory=list)


class Oracle:
    """
    Thin synchronous client. One request in flight at a time.

    Example:
        oracle = Oracle.from_settings(Settings.from_env())
        completion = oracle.complete([{"role": "user", "content": "hi"}])
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        client: Any = None,
    ) -> None:
        self.model = model
        self._client = client or OpenAI(base_url=base_url, api_key=api_key)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Oracle":
        return cls(settings.model, api_key=settings.require_api_key(), base_url=settings.base_url)

    def complete(
        self,
        messages: list[dict],
        tools: list[dict] | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
    ) -> Completion:
        kwargs: dict[str, Any] = {"model": self.model, "messages": messages}
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        if tools:
            kwargs["tools"] = [{"type": "function", "function": tool} for tool in tools]
            kwargs["parallel_tool_calls"] = False
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self._client.chat.completions.create(**kwargs)
        except OpenAIError as exc:
            raise OracleError(f"Oracle request failed: {exc}") from exc

        if not response.choices:
            raise OracleError("Oracle returned no choices.")
        message = response.choices[0].message

        calls = [
            {"name": call.function.name, "arguments": call.function.arguments}
            for call in (message.tool_calls or [])
            if call.type == "function"
        ]
        legacy = getattr(message, "function_call", None)
        if not calls and legacy is not None:
            calls.append({"name": legacy.name, "arguments": legacy.arguments})

        content = message.content.strip() if message.content else None
        return Completion(content=content or None, tool_calls=calls)

    def text(self, messages: list[dict], max_tokens: int | None = None, json_mode: bool = False) -> str:
        completion = self.complete(messages, max_tokens=max_tokens, json_mode=json_mode)
        if not completion.content:
            raise OracleError("Oracle returned no text.")
        return completion.content


# ---------------------------------------------------------------------------
# Response adapters
# ---------------------------------------------------------------------------


def sniff_json(text: str) -> Any:
    """Best-effort JSON from free text: bare, fenced, or the outermost {...}. None on failure."""
    stripped = text.strip()
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        return json.loads(stripped, strict=False)
    except json.JSONDecodeError:
        pass
    embedded = re.search(r"\{.*\}", stripped, re.DOTALL)
    if embedded:
        try:
            return json.loads(embedded.group(0), strict=False)
        except json.JSONDecodeError:
            return None
    return None


def _coerce_arguments(raw: Any) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw, strict=False)
        except json.JSONDecodeError as exc:
            raise ActionParseError(f"Tool call arguments are malformed JSON: {exc}\nPayload: {raw}") from exc
        if isinstance(parsed, dict):
            return parsed
    raise ActionParseError(f"Tool call arguments must be a JSON object, got: {raw!r}")


def parse_action(completion: Completion) -> ParsedAction | None:
    """
    Structured tool call first, then a JSON object embedded in the text.

    Returns None when the response carries no call at all. Raises
    ActionParseError when a call is present but its arguments are unusable.
    """
    if completion.tool_calls:
        if len(completion.tool_calls) > 1:
            logger.warning("Oracle returned %d tool calls; using the first", len(completion.tool_calls))
        call = completion.tool_calls[0]
        return ParsedAction(name=call["name"], arguments=_coerce_arguments(call.get("arguments")))

    if completion.content:
        data = sniff_json(completion.content)
        if isinstance(data, dict) and isinstance(data.get("name"), str) and data["name"]:
            raw = data.get("arguments", data.get("args"))
            return ParsedAction(name=data["name"], arguments=_coerce_arguments(raw))
    return None


def parse_thought(completion: Completion) -> Thought:
    """
    Structured {"thought", "done"} when available, else the raw text.

    The stop sentinel marks a thought done in either form.
    """
    if not completion.content:
        raise OracleError("Oracle returned no thought.")

    thought = None
    data = sniff_json(completion.content)
    if isinstance(data, dict) and "thought" in data:
        try:
            thought = Thought.model_validate(data)
        except ValidationError:
            thought = None
    if thought is None:
        thought = Thought(thought=completion.content)

    if not thought.done and SENTINEL_RE.search(thought.thought):
        thought = Thought(thought=thought.thought, done=True)
    return thought


def parse_patterns(text: str) -> list[str] | None:
    """A JSON array of non-empty strings, fenced or bare. None otherwise."""
    stripped = text.strip()
    fenced = _FENCE_RE.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, list):
        return None
    patterns = [p for p in data if isinstance(p, str) and p.strip()]
    return patterns or None
