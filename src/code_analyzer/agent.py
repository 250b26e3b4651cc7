# agent.py
# Agent control loop
#
# The loop is the kernel. The oracle is a passive responder; this class owns
# all control flow, routing and state. Side effects only happen through the
# ToolRegistry.
#
# Control flow:
#   Planning → (Thinking → Acting → Observing)* → Summarizing → Done
#
# Termination:
#   done thought | no tool call | turn limit  → Summarizing
#   any exception in a stage                  → Failed, no summary
#
# All terminal output is delegated to display.py. No formatting here.

import logging

from code_analyzer import display, prompts
from code_analyzer.config import Settings
from code_analyzer.context import ExecutionContext
from code_analyzer.models import AgentResult, AgentState, ParsedAction, Thought, TurnRecord
from code_analyzer.oracle import Oracle, OracleError, parse_action, parse_thought
from code_analyzer.registry import Confirm, ToolRegistry
from code_analyzer.tools import default_tools

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class PlanningError(Exception):
    """Raised when the oracle produces no usable plan. Always aborts the run."""


class _StageFailure(Exception):
    def __init__(self, stage: AgentState, cause: Exception) -> None:
        super().__init__(str(cause))
        self.stage = stage
        self.cause = cause


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class Agent:
    """
    Plan → Thought → Action → Observation → Summary over one ExecutionContext.

    Example:
        settings = Settings.from_env()
        agent = Agent.from_settings(settings, Oracle.from_settings(settings))
        result = agent.run("Find where parse_config is defined and explain it.")
        follow = agent.follow_up("Now add a docstring to it.")
    """

    def __init__(
        self,
        oracle: Oracle,
        registry: ToolRegistry,
        context: ExecutionContext,
        max_turns: int = 25,
        plan_max_tokens: int = 400,
        thought_max_tokens: int = 300,
        summary_max_tokens: int = 600,
    ) -> None:
        self.oracle = oracle
        self.registry = registry
        self.context = context
        self.max_turns = max_turns
        self.plan_max_tokens = plan_max_tokens
        self.thought_max_tokens = thought_max_tokens
        self.summary_max_tokens = summary_max_tokens
        self.state: AgentState | None = None
        self.transitions: list[AgentState] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        oracle: Oracle,
        context: ExecutionContext | None = None,
        confirm: Confirm | None = None,
    ) -> "Agent":
        context = context or ExecutionContext(debug=settings.debug)
        registry = ToolRegistry(default_tools(), context, confirm=confirm)
        return cls(
            oracle,
            registry,
            context,
            max_turns=settings.max_turns,
            plan_max_tokens=settings.plan_max_tokens,
            thought_max_tokens=settings.thought_max_tokens,
            summary_max_tokens=settings.summary_max_tokens,
        )

    def _enter(self, state: AgentState) -> None:
        logger.debug("State %s → %s", self.state.value if self.state else "-", state.value)
        self.state = state
        self.transitions.append(state)

    # ------------------------------------------------------------------
    # Oracle steps
    # ------------------------------------------------------------------

    def create_plan(self, goal: str, include_past_conversation: bool = False) -> str:
        manifest = self.registry.get_function_schemas()
        messages = [
            {
                "role": "system",
                "content": prompts.plan_prompt(
                    manifest,
                    self.context.current_directory,
                    self.plan_max_tokens,
                    include_past_conversation,
                ),
            }
        ]
        if include_past_conversation:
            messages += self.context.chat_history()
        article = "a new" if include_past_conversation else "an"
        messages.append(
            {"role": "user", "content": f"Create {article} execution plan for the following query: {goal}"}
        )

        try:
            plan = self.oracle.text(messages, max_tokens=self.plan_max_tokens)
        except OracleError as exc:
            raise PlanningError(f"No valid plan generated: {exc}") from exc
        display.debug(f"plan response: {plan!r}")
        if not plan.strip():
            raise PlanningError("No valid plan generated: the oracle returned empty text.")
        return plan.strip()

    def next_thought(self) -> Thought:
        manifest = self.registry.get_function_schemas()
        messages = [
            {
                "role": "system",
                "content": prompts.thought_prompt(
                    manifest, self.context.current_directory, self.thought_max_tokens
                ),
            },
            {"role": "user", "content": f"Execution plan: {self.context.get_plan()}"},
            *self.context.chat_history(),
        ]
        display.debug(f"thinking over {len(messages)} messages")
        completion = self.oracle.complete(messages, max_tokens=self.thought_max_tokens, json_mode=True)
        display.debug(f"thought response: {completion.content!r}")
        return parse_thought(completion)

    def next_action(self) -> ParsedAction | None:
        messages = [
            {"role": "system", "content": prompts.action_prompt(self.context.current_directory)},
            *self.context.chat_history(),
            {"role": "user", "content": "Carry out the next thought above with exactly one tool call."},
        ]
        completion = self.oracle.complete(messages, tools=self.registry.get_function_schemas())
        display.debug(f"action response: {completion.model_dump()}")
        return parse_action(completion)

    def summarize(self) -> str:
        messages = [
            {"role": "system", "content": prompts.summary_prompt(self.summary_max_tokens)},
            *self.context.chat_history(),
        ]
        return self.oracle.text(messages, max_tokens=self.summary_max_tokens)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _turn(self, turn: int) -> tuple[str | None, TurnRecord | None]:
        """One Thinking → Acting → Observing cycle. Returns (stop_reason, record)."""
        self._enter(AgentState.THINKING)
        try:
            thought = self.next_thought()
        except Exception as exc:
            raise _StageFailure(AgentState.THINKING, exc) from exc

        self.context.add_message("assistant", f"Next thought: {thought.thought}")
        display.thought(thought.thought, thought.done)
        if thought.done:
            return "done", None

        self._enter(AgentState.ACTING)
        try:
            action = self.next_action()
        except Exception as exc:
            raise _StageFailure(AgentState.ACTING, exc) from exc

        if action is None:
            display.no_action()
            return "no_action", None
        display.action(action.name, action.arguments)

        self._enter(AgentState.OBSERVING)
        try:
            observation = self.registry.execute_tool(action.name, action.arguments)
        except Exception as exc:
            raise _StageFailure(AgentState.OBSERVING, exc) from exc
        display.observation(observation)
        return None, TurnRecord(turn=turn, thought=thought.thought, action=action, observation=observation)

    def run(self, goal: str, include_past_conversation: bool = False) -> AgentResult:
        """
        Full pipeline for one goal.

        Returns an AgentResult in all cases. Failures are reported through
        `status`, `stage` and `error`; they are never raised.
        """
        display.goal_received(goal, follow_up=include_past_conversation)
        self.transitions = []

        # ── Planning ──────────────────────────────────────────────────
        self._enter(AgentState.PLANNING)
        display.planning_start()
        try:
            plan = self.create_plan(goal, include_past_conversation)
        except Exception as exc:
            return self._fail(goal, AgentState.PLANNING, exc)

        self.context.set_plan(plan)
        self.context.add_message("user", f"Goal: {goal}")
        self.context.add_message("assistant", f"Execution plan: {plan}")
        display.plan_created(plan)

        # ── Thought / Action / Observation ────────────────────────────
        turns: list[TurnRecord] = []
        stop_reason = None
        while stop_reason is None:
            if len(turns) >= self.max_turns:
                display.max_turns_reached(self.max_turns)
                stop_reason = "max_turns"
                break
            turn = len(turns) + 1
            display.turn_start(turn, self.max_turns)
            try:
                stop_reason, record = self._turn(turn)
            except _StageFailure as failure:
                logger.error("Loop aborted during %s", failure.stage.value, exc_info=failure.cause)
                return self._fail(goal, failure.stage, failure.cause, plan=plan, turns=turns)
            if record is not None:
                turns.append(record)

        # ── Summary ───────────────────────────────────────────────────
        self._enter(AgentState.SUMMARIZING)
        display.summarizing_start()
        display.execution_summary(turns)
        try:
            summary = self.summarize()
        except Exception as exc:
            return self._fail(goal, AgentState.SUMMARIZING, exc, plan=plan, turns=turns)

        self.context.add_message("assistant", summary)
        display.final_result(summary)
        self._enter(AgentState.DONE)
        return AgentResult(
            goal=goal,
            status="completed",
            plan=plan,
            summary=summary,
            stop_reason=stop_reason,
            turns=turns,
        )

    def follow_up(self, goal: str) -> AgentResult:
        """Plan a further goal on top of the existing history and resume."""
        return self.run(goal, include_past_conversation=True)

    def _fail(
        self,
        goal: str,
        stage: AgentState,
        exc: Exception,
        plan: str | None = None,
        turns: list[TurnRecord] | None = None,
    ) -> AgentResult:
        self._enter(AgentState.FAILED)
        display.error(stage.value, str(exc))
        return AgentResult(
            goal=goal,
            status="failed",
            plan=plan,
            stage=stage,
            error=str(exc),
            turns=turns or [],
        )
