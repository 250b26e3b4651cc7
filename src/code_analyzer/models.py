# models.py
# Data contracts for the agent loop, the dispatcher and the search pipeline.
# No business logic lives here. Pure schema and validation.

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------


class Message(BaseModel):
    """One entry of the oracle's working memory. Frozen once created."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"]
    content: str
    timestamp: str = Field(default_factory=_now)

    def to_chat(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


# ---------------------------------------------------------------------------
# Oracle outputs
# ---------------------------------------------------------------------------


class ParsedAction(BaseModel):
    """A single tool call requested by the oracle."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class Thought(BaseModel):
    """Next-step reasoning. `done` is set once the plan is satisfied."""

    thought: str
    done: bool = False


# ---------------------------------------------------------------------------
# Agent run
# ---------------------------------------------------------------------------


class AgentState(str, Enum):
    PLANNING = "planning"
    THINKING = "thinking"
    ACTING = "acting"
    OBSERVING = "observing"
    SUMMARIZING = "summarizing"
    DONE = "done"
    FAILED = "failed"


class TurnRecord(BaseModel):
    """Log entry produced after each Thought → Action → Observation cycle."""

    turn: int = Field(..., description="1-based turn index within the goal.")
    thought: str
    action: ParsedAction
    observation: str = ""


class AgentResult(BaseModel):
    """Outcome of one goal. `summary` is None whenever `status` is failed."""

    goal: str
    status: Literal["completed", "failed"]
    plan: str | None = None
    summary: str | None = None
    stop_reason: Literal["done", "no_action", "max_turns"] | None = None
    stage: AgentState | None = Field(default=None, description="State that failed, if any.")
    error: str | None = None
    turns: list[TurnRecord] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Search pipeline
# ---------------------------------------------------------------------------


class SearchMatch(BaseModel):
    file: str
    pattern: str
    lines: list[int] = Field(default_factory=list, description="1-based matching line numbers.")


class RankedFile(BaseModel):
    file: str
    score: float
    pattern_matches: int = Field(..., description="Distinct patterns with at least one hit.")
    total_matches: int


class CodeChunk(BaseModel):
    file: str
    start_line: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    content: str
    matched_lines: list[int] = Field(default_factory=list)


class ChunkSelection(BaseModel):
    """Pipeline output. `fallback` marks whole-file excerpts taken when nothing matched."""

    patterns: list[str]
    ranked_files: list[RankedFile] = Field(default_factory=list)
    chunks: list[CodeChunk] = Field(default_factory=list)
    matches: list[SearchMatch] = Field(default_factory=list)
    fallback: bool = False
