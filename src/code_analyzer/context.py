# context.py
# Execution context. The single mutable store a session runs against.
#
# One instance per session, passed explicitly into the agent, the dispatcher
# and every tool. History is append-only; the plan is last-write-wins; the
# remote-content cache is the only state shared across goals.

import os
from typing import Any

from code_analyzer.models import Message


class ExecutionContext:
    """
    Holds {plan, message history, working directory, debug flag, remote cache}.

    Not thread-safe. At most one agent loop may drive a given instance.
    """

    def __init__(self, current_directory: str | None = None, debug: bool = False) -> None:
        self.current_directory: str = current_directory or os.getcwd()
        self.debug = debug
        self._plan: str | None = None
        self._messages: list[Message] = []
        self._website_cache: dict[str, dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # Conversation history
    # ------------------------------------------------------------------

    def add_message(self, role: str, content: str) -> Message:
        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    def get_messages(self) -> list[Message]:
        """The live history list. Callers must not mutate it."""
        return self._messages

    def chat_history(self) -> list[dict[str, str]]:
        return [message.to_chat() for message in self._messages]

    # ------------------------------------------------------------------
    # Plan
    # ------------------------------------------------------------------

    def set_plan(self, plan: str) -> None:
        self._plan = plan

    def get_plan(self) -> str | None:
        return self._plan

    # ------------------------------------------------------------------
    # Remote content cache
    # ------------------------------------------------------------------

    def get_website_content(self, url: str) -> dict[str, Any] | None:
        """Cached payload for `url`, or None on a miss."""
        return self._website_cache.get(url)

    def store_website_content(self, url: str, data: dict[str, Any]) -> None:
        self._website_cache[url] = data
