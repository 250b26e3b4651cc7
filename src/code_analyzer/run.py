# run.py
# Entry point. Config and wiring only, no logic lives here.
#
# Provider, model and limits come from .env / environment variables and may
# be overridden on the command line.

import argparse
import logging
import os
import sys

from rich.logging import RichHandler

from code_analyzer import display
from code_analyzer.agent import Agent
from code_analyzer.analysis import analyze_codebase
from code_analyzer.config import PROVIDER_BASE_URLS, ConfigError, Settings
from code_analyzer.context import ExecutionContext
from code_analyzer.oracle import Oracle, OracleError


def _csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="code-analyzer",
        description="Autonomous tool-using agent and codebase analyzer.",
    )
    parser.add_argument("goal", nargs="?", help="Goal for the agent, or the question in --analyze mode.")
    parser.add_argument("--provider", choices=sorted(PROVIDER_BASE_URLS), help="Oracle provider.")
    parser.add_argument("--model", help="Model name passed to the provider.")
    parser.add_argument("--debug", action="store_true", default=None, help="Verbose diagnostics.")
    parser.add_argument("--max-turns", type=int, help="Hard cap on Thought/Action turns per goal.")
    parser.add_argument("--analyze", action="store_true", help="Answer a question about a codebase in one shot.")
    parser.add_argument("-d", "--directory", default=".", help="Codebase directory for --analyze.")
    parser.add_argument("-e", "--extensions", type=_csv, help="Comma-separated file extensions for --analyze.")
    parser.add_argument("-i", "--ignore", type=_csv, help="Comma-separated ignore patterns for --analyze.")
    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=display.console, rich_tracebacks=True, show_path=debug)],
    )
    # Keep HTTP client chatter out of debug output.
    for noisy in ("httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = Settings.from_env(
            provider=args.provider,
            model=args.model,
            debug=args.debug,
            max_turns=args.max_turns,
            extensions=args.extensions,
            ignore=args.ignore,
        )
        oracle = Oracle.from_settings(settings)
    except ConfigError as exc:
        display.error("configuration", str(exc))
        return 1

    configure_logging(settings.debug)
    display.set_debug(settings.debug)
    display.banner(settings.provider, settings.model, settings.max_turns)

    goal = args.goal or display.prompt_goal()
    if not goal:
        display.error("configuration", "Please provide a goal or question.")
        return 1

    if args.analyze:
        try:
            analysis = analyze_codebase(goal, os.path.abspath(args.directory), oracle, settings)
        except OracleError as exc:
            display.error("analysis", str(exc))
            return 1
        display.final_result(analysis)
        return 0

    agent = Agent.from_settings(settings, oracle, context=ExecutionContext(debug=settings.debug))
    result = agent.run(goal)
    while result.status == "completed":
        goal = display.prompt_goal(follow_up=True)
        if not goal:
            break
        result = agent.follow_up(goal)

    return 0 if result.status == "completed" else 1


if __name__ == "__main__":
    sys.exit(main())
