# analysis.py
# One-shot codebase question answering.
#
#   question → oracle search patterns → ranked chunks → oracle analysis
#
# No tool loop and no history: the oracle sees the excerpts once.

import logging
import os

from code_analyzer import display, prompts, search
from code_analyzer.config import Settings
from code_analyzer.models import ChunkSelection
from code_analyzer.oracle import Oracle, OracleError, parse_patterns

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = ["function", "class", "import", "export"]
CONTEXT_CHAR_BUDGET = 12000
FILES_PER_PATTERN = 10
LINES_PER_FILE = 10


def get_search_patterns(oracle: Oracle, query: str) -> list[str]:
    messages = [
        {"role": "system", "content": prompts.PATTERNS_PROMPT},
        {
            "role": "user",
            "content": f'I\'m analyzing a codebase and want to find code related to this question: "{query}"',
        },
    ]
    try:
        patterns = parse_patterns(oracle.text(messages))
    except OracleError as exc:
        logger.warning("Pattern request failed: %s", exc)
        patterns = None
    if not patterns:
        logger.warning("Could not parse search patterns from the oracle. Using default patterns.")
        return list(DEFAULT_PATTERNS)
    return patterns


def build_context_message(query: str, selection: ChunkSelection) -> str:
    """Numbered chunks within the character budget, then a per-pattern match digest."""
    parts = [f'I\'m analyzing a codebase to answer: "{query}"\n\n']
    if selection.fallback:
        parts.append(prompts.FALLBACK_ANALYSIS_NOTE + "\n\n")
    parts.append("Here are relevant code samples:\n\n")
    length = sum(len(p) for p in parts)

    for number, chunk in enumerate(selection.chunks, start=1):
        ext = os.path.splitext(chunk.file)[1].lstrip(".")
        block = (
            f"### CHUNK {number}: {chunk.file} (Lines {chunk.start_line}-{chunk.end_line})\n"
            f"```{ext}\n{chunk.content}\n```\n\n"
        )
        parts.append(block)
        length += len(block)
        if length > CONTEXT_CHAR_BUDGET and number < len(selection.chunks):
            parts.append("\nNote: Additional code chunks exist but were omitted due to token limits.\n")
            break

    parts.append("\n### GREP SEARCH RESULTS:\n")
    grouped = search.group_matches(selection.matches)
    for pattern in selection.patterns:
        parts.append(f'\nMatches for pattern "{pattern}":\n')
        files = [(path, per[pattern]) for path, per in grouped.items() if per.get(pattern)]
        for path, lines in files[:FILES_PER_PATTERN]:
            parts.append(f"- {path}:\n")
            parts += [f"  line {line}\n" for line in lines[:LINES_PER_FILE]]
            if len(lines) > LINES_PER_FILE:
                parts.append(f"  ... and {len(lines) - LINES_PER_FILE} more matches\n")
        if len(files) > FILES_PER_PATTERN:
            parts.append(f"... and {len(files) - FILES_PER_PATTERN} more files with matches for this pattern\n")
        if not files:
            parts.append("No matches found\n")

    return "".join(parts)


def analyze_codebase(query: str, directory: str, oracle: Oracle, settings: Settings) -> str:
    patterns = get_search_patterns(oracle, query)
    display.search_patterns(patterns)
    selection = search.select_chunks(
        patterns,
        directory,
        extensions=settings.extensions,
        ignore=settings.ignore,
        limit=settings.top_files,
    )
    display.ranked_files(selection.ranked_files)
    display.chunks_extracted(len(selection.chunks), selection.fallback)

    messages = [
        {"role": "system", "content": prompts.ANALYSIS_PROMPT},
        {"role": "user", "content": build_context_message(query, selection)},
    ]
    return oracle.text(messages, max_tokens=settings.analysis_max_tokens)
