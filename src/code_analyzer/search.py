# search.py
# Relevance ranking and chunk extraction.
#
#   patterns → file discovery → per-file line matches → score & rank
#   → context-padded windows → merged, clamped, size-bounded chunks
#
# Everything here is recomputed per query. Nothing is cached.

import fnmatch
import logging
import os
import re
from collections.abc import Iterable

from code_analyzer.models import ChunkSelection, CodeChunk, RankedFile, SearchMatch

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ["js", "jsx", "ts", "tsx", "py", "java", "c", "cpp", "go", "rb"]
DEFAULT_IGNORE = ["node_modules", "dist", "build", ".git"]

CONTEXT_LINES = 10
MERGE_GAP = 5
MAX_CHUNK_LINES = 80
TOP_FILES = 5

# Score given to padding files that matched nothing. Below any real match.
FALLBACK_SCORE = 0.001
FALLBACK_BYTES = 4000

_BINARY_SNIFF = 8192


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _ignored(name: str, ignore: Iterable[str]) -> bool:
    return any(fnmatch.fnmatch(name, pattern) for pattern in ignore)


def find_files_by_extension(
    directory: str,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    ignore: Iterable[str] = DEFAULT_IGNORE,
) -> list[str]:
    """
    Walk `directory` and return files whose extension is allowed.

    Hidden entries and anything matching an ignore pattern are skipped.
    Order is deterministic (sorted walk) and defines discovery order.
    """
    suffixes = {"." + ext.strip().lstrip(".") for ext in extensions if ext.strip()}
    ignore = [i.strip() for i in ignore if i.strip()]
    found: list[str] = []

    for root, dirs, files in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if not d.startswith(".") and not _ignored(d, ignore))
        for name in sorted(files):
            if name.startswith(".") or _ignored(name, ignore):
                continue
            if os.path.splitext(name)[1] in suffixes:
                found.append(os.path.join(root, name))

    return found


def read_lines(path: str) -> list[str] | None:
    """
    Text lines of `path`, or None for unreadable or binary files.

    Lines are split on newlines only, so numbering agrees with update_file
    even when the file holds form feeds or other Unicode line breaks.
    """
    try:
        with open(path, "rb") as fh:
            data = fh.read()
    except OSError as exc:
        logger.debug("Skipping unreadable file %s: %s", path, exc)
        return None
    if b"\x00" in data[:_BINARY_SNIFF]:
        return None
    lines = [line.rstrip("\r") for line in data.decode("utf-8", errors="replace").split("\n")]
    if lines[-1] == "":
        lines.pop()
    return lines


# ---------------------------------------------------------------------------
# Pattern search
# ---------------------------------------------------------------------------


def compile_pattern(pattern: str, case_insensitive: bool) -> re.Pattern:
    flags = re.IGNORECASE if case_insensitive else 0
    try:
        return re.compile(pattern, flags)
    except re.error:
        return re.compile(re.escape(pattern), flags)


def execute_grep_searches(
    patterns: list[str],
    files: list[str],
    case_insensitive: bool = False,
) -> list[SearchMatch]:
    """One SearchMatch per (file, pattern) pair with at least one matching line."""
    compiled = [(pattern, compile_pattern(pattern, case_insensitive)) for pattern in patterns]
    matches: list[SearchMatch] = []
    counts = {pattern: 0 for pattern in patterns}

    for path in files:
        lines = read_lines(path)
        if lines is None:
            continue
        for pattern, regex in compiled:
            hits = [number for number, line in enumerate(lines, start=1) if regex.search(line)]
            if hits:
                matches.append(SearchMatch(file=path, pattern=pattern, lines=hits))
                counts[pattern] += 1

    for pattern, count in counts.items():
        logger.info("Pattern %r found in %d files", pattern, count)
    return matches


def group_matches(matches: Iterable[SearchMatch]) -> dict[str, dict[str, list[int]]]:
    """file → pattern → lines, in first-seen order."""
    grouped: dict[str, dict[str, list[int]]] = {}
    for match in matches:
        grouped.setdefault(match.file, {})[match.pattern] = list(match.lines)
    return grouped


# ---------------------------------------------------------------------------
# Scoring & ranking
# ---------------------------------------------------------------------------


def score_file(pattern_matches: int, total_matches: int) -> float:
    """
    Coverage first, volume second.

    total / (total + 1) stays below 1, so one extra covered pattern always
    outweighs any number of additional hits on patterns already covered.
    """
    if total_matches <= 0 or pattern_matches <= 0:
        return 0.0
    return pattern_matches + total_matches / (total_matches + 1)


def rank_files(
    matches: Iterable[SearchMatch],
    limit: int = TOP_FILES,
    discovered: Iterable[str] | None = None,
) -> list[RankedFile]:
    """
    Top `limit` files by score, ties kept in discovery order.

    When fewer than `limit` files matched, the list is padded from
    `discovered` with FALLBACK_SCORE entries.
    """
    ranked: list[RankedFile] = []
    for path, per_pattern in group_matches(matches).items():
        coverage = sum(1 for lines in per_pattern.values() if lines)
        total = sum(len(lines) for lines in per_pattern.values())
        ranked.append(
            RankedFile(
                file=path,
                score=score_file(coverage, total),
                pattern_matches=coverage,
                total_matches=total,
            )
        )

    ranked = [r for r in sorted(ranked, key=lambda r: r.score, reverse=True) if r.score > 0]
    top = ranked[:limit]

    if len(top) < limit and discovered is not None:
        seen = {r.file for r in top}
        for path in discovered:
            if len(top) >= limit:
                break
            if path not in seen:
                seen.add(path)
                top.append(RankedFile(file=path, score=FALLBACK_SCORE, pattern_matches=0, total_matches=0))

    return top


# ---------------------------------------------------------------------------
# Chunk extraction
# ---------------------------------------------------------------------------


def merge_windows(
    lines: Iterable[int],
    total_lines: int,
    context_lines: int = CONTEXT_LINES,
    gap: int = MERGE_GAP,
) -> list[tuple[int, int]]:
    """Pad each matched line by `context_lines`, clamp, and merge windows closer than `gap`."""
    windows: list[tuple[int, int]] = []
    for line in sorted(set(lines)):
        if line < 1 or line > total_lines:
            continue
        start = max(1, line - context_lines)
        end = min(total_lines, line + context_lines)
        if windows and start <= windows[-1][1] + gap:
            windows[-1] = (windows[-1][0], max(windows[-1][1], end))
        else:
            windows.append((start, end))
    return windows


def split_window(start: int, end: int, max_lines: int = MAX_CHUNK_LINES) -> list[tuple[int, int]]:
    if max_lines <= 0 or end - start + 1 <= max_lines:
        return [(start, end)]
    return [(s, min(end, s + max_lines - 1)) for s in range(start, end + 1, max_lines)]


def extract_code_chunks(
    ranked: Iterable[RankedFile],
    matches: Iterable[SearchMatch],
    context_lines: int = CONTEXT_LINES,
    gap: int = MERGE_GAP,
    max_chunk_lines: int = MAX_CHUNK_LINES,
) -> list[CodeChunk]:
    grouped = group_matches(matches)
    chunks: list[CodeChunk] = []

    for entry in ranked:
        per_pattern = grouped.get(entry.file)
        if not per_pattern:
            continue
        matched = sorted({line for lines in per_pattern.values() for line in lines})
        file_lines = read_lines(entry.file)
        if not file_lines:
            continue

        for start, end in merge_windows(matched, len(file_lines), context_lines, gap):
            for lo, hi in split_window(start, end, max_chunk_lines):
                chunks.append(
                    CodeChunk(
                        file=entry.file,
                        start_line=lo,
                        end_line=hi,
                        content="\n".join(file_lines[lo - 1 : hi]),
                        matched_lines=[line for line in matched if lo <= line <= hi],
                    )
                )

    return chunks


def fallback_excerpts(
    files: Iterable[str],
    limit: int = TOP_FILES,
    byte_budget: int = FALLBACK_BYTES,
) -> list[CodeChunk]:
    """Leading excerpt of up to `limit` files, each cut to `byte_budget` bytes."""
    chunks: list[CodeChunk] = []
    for path in files:
        if len(chunks) >= limit:
            break
        lines = read_lines(path)
        if not lines:
            continue
        text = "\n".join(lines).encode("utf-8")[:byte_budget].decode("utf-8", errors="ignore")
        kept = text.split("\n")
        if kept[-1] == "":
            kept.pop()
        if not kept:
            continue
        chunks.append(CodeChunk(file=path, start_line=1, end_line=len(kept), content="\n".join(kept)))
    return chunks


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def select_chunks(
    patterns: list[str],
    directory: str,
    extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    ignore: Iterable[str] = DEFAULT_IGNORE,
    limit: int = TOP_FILES,
    case_insensitive: bool = False,
    context_lines: int = CONTEXT_LINES,
    max_chunk_lines: int = MAX_CHUNK_LINES,
) -> ChunkSelection:
    files = find_files_by_extension(directory, extensions, ignore)
    logger.info("Found %d candidate files under %s", len(files), directory)
    matches = execute_grep_searches(patterns, files, case_insensitive)

    if not matches:
        chunks = fallback_excerpts(files, limit)
        return ChunkSelection(
            patterns=patterns,
            ranked_files=[
                RankedFile(file=c.file, score=FALLBACK_SCORE, pattern_matches=0, total_matches=0)
                for c in chunks
            ],
            chunks=chunks,
            fallback=True,
        )

    ranked = rank_files(matches, limit, discovered=files)
    chunks = extract_code_chunks(
        ranked, matches, context_lines=context_lines, max_chunk_lines=max_chunk_lines
    )
    return ChunkSelection(patterns=patterns, ranked_files=ranked, chunks=chunks, matches=matches)
