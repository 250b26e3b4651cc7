# tools.py
# Local capability tools: filesystem, search, commands, operator I/O.
# The agent never calls these directly; it goes through ToolRegistry.

import fnmatch
import os
import subprocess
from datetime import datetime, timezone
from typing import Literal

from pydantic import Field

from code_analyzer import display, search
from code_analyzer.context import ExecutionContext
from code_analyzer.registry import Tool, ToolArgs, ToolError, resolve_path
from code_analyzer.web import GetWebsiteContentTool, ReadPdfFileTool, WebSearchTool

GREP_EXCLUDED_DIRS = {"node_modules", ".git"}
GREP_EXCLUDED_EXTENSIONS = (".min.js", ".map", ".jpg", ".png", ".gif", ".svg", ".pdf", ".zip", ".tar", ".gz")


# ---------------------------------------------------------------------------
# list_directories
# ---------------------------------------------------------------------------


class ListDirectoriesArgs(ToolArgs):
    path: str = Field(..., description="Absolute directory path to list.")
    options: Literal["", "a", "l", "al"] = Field(
        "l", description="'a' includes hidden entries, 'l' returns detailed entries, 'al' both."
    )


class ListDirectoriesTool(Tool):
    name = "list_directories"
    description = "Lists files and directories in the specified path."
    input_model = ListDirectoriesArgs

    def execute(self, args: ListDirectoriesArgs, context: ExecutionContext) -> dict:
        directory = resolve_path(args.path, context)
        show_hidden = "a" in args.options
        detailed = "l" in args.options
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as exc:
            raise ToolError(str(exc), path=directory) from exc

        items: list = []
        for entry in entries:
            if not show_hidden and entry.name.startswith("."):
                continue
            if not detailed:
                items.append(entry.name)
                continue
            try:
                stats = entry.stat()
            except OSError:
                items.append({"name": entry.name, "type": "unknown"})
                continue
            items.append(
                {
                    "name": entry.name,
                    "type": "directory" if entry.is_dir() else "file",
                    "size": stats.st_size,
                    "modified": datetime.fromtimestamp(stats.st_mtime, timezone.utc).isoformat(),
                    "permissions": oct(stats.st_mode)[-3:],
                }
            )
        return {"directories": items, "metadata": {"total": len(items)}}

    def format(self, result: dict) -> list:
        display.tool_status(f"Matches: {len(result['directories'])}")
        return result["directories"]


# ---------------------------------------------------------------------------
# read_file_content
# ---------------------------------------------------------------------------


class ReadFileArgs(ToolArgs):
    path: str = Field(..., description="Path of the file to read.")
    encoding: str = Field("utf-8", description="Text encoding.")


class ReadFileTool(Tool):
    name = "read_file_content"
    description = "Reads and returns the contents of a file at the specified path."
    input_model = ReadFileArgs

    def execute(self, args: ReadFileArgs, context: ExecutionContext) -> dict:
        path = resolve_path(args.path, context)
        try:
            with open(path, encoding=args.encoding) as fh:
                return {"content": fh.read()}
        except (OSError, LookupError, UnicodeDecodeError) as exc:
            raise ToolError(str(exc), path=path) from exc

    def format(self, result: dict) -> str:
        return result["content"]


# ---------------------------------------------------------------------------
# find_files
# ---------------------------------------------------------------------------


class FindFilesArgs(ToolArgs):
    pattern: str = Field(..., description="Glob for file names, e.g. '*.py' or 'README*'.")
    directory: str = Field(".", description="Directory to search within.")
    max_depth: int | None = Field(None, ge=0, description="Maximum directory depth below `directory`.")
    type: Literal["f", "d", "any"] = Field("f", description="'f' files, 'd' directories, 'any' both.")


class FindFilesTool(Tool):
    name = "find_files"
    description = "Finds files or directories whose names match a glob pattern."
    input_model = FindFilesArgs

    def execute(self, args: FindFilesArgs, context: ExecutionContext) -> dict:
        root = resolve_path(args.directory, context)
        if not os.path.isdir(root):
            raise ToolError(f"Directory does not exist: {root}", path=root)

        found: list[str] = []
        base_depth = root.rstrip(os.sep).count(os.sep)
        for current, dirs, files in os.walk(root):
            depth = current.rstrip(os.sep).count(os.sep) - base_depth
            dirs.sort()
            candidates: list[str] = []
            if args.type in ("d", "any"):
                candidates += dirs
            if args.max_depth is not None and depth >= args.max_depth:
                dirs[:] = []
            if args.type in ("f", "any"):
                candidates += sorted(files)
            found += [os.path.join(current, n) for n in candidates if fnmatch.fnmatch(n, args.pattern)]
        return {"files": found}

    def format(self, result: dict) -> list:
        display.tool_status(f"Matches: {len(result['files'])}")
        return result["files"]


# ---------------------------------------------------------------------------
# grep_search
# ---------------------------------------------------------------------------


class GrepSearchArgs(ToolArgs):
    search_directory: str = Field(..., description="Root directory of the search.")
    query: str = Field(..., description="Regular expression to search for in file lines.")
    includes: list[str] = Field(
        default_factory=list, description="Globs relative to search_directory, e.g. ['src/**/*.ts']."
    )
    match_per_line: bool = Field(False, description="Return only the matching portion of each line.")
    case_insensitive: bool = False
    max_results: int = Field(50, ge=1)
    max_buffer_size: int = Field(1048576, ge=1, description="Skip files larger than this many bytes.")


class GrepSearchTool(Tool):
    name = "grep_search"
    description = "Searches for a text pattern in files, returning 'path:line:text' matches."
    input_model = GrepSearchArgs

    def execute(self, args: GrepSearchArgs, context: ExecutionContext) -> dict:
        root = resolve_path(args.search_directory, context)
        if not os.path.isdir(root):
            raise ToolError(f"Directory does not exist: {root}", path=root)
        regex = search.compile_pattern(args.query, args.case_insensitive)

        results: list[str] = []
        errors: list[dict] = []

        def _walk_error(exc: OSError) -> None:
            errors.append({"path": exc.filename, "message": exc.strerror})

        for current, dirs, files in os.walk(root, onerror=_walk_error):
            dirs[:] = sorted(d for d in dirs if d not in GREP_EXCLUDED_DIRS)
            for name in sorted(files):
                path = os.path.join(current, name)
                relative = os.path.relpath(path, root)
                if args.includes:
                    if not any(fnmatch.fnmatch(relative, glob) for glob in args.includes):
                        continue
                elif name.endswith(GREP_EXCLUDED_EXTENSIONS):
                    continue
                try:
                    if os.path.getsize(path) > args.max_buffer_size:
                        continue
                except OSError:
                    continue
                lines = search.read_lines(path) or []
                for number, line in enumerate(lines, start=1):
                    if args.match_per_line:
                        results += [f"{path}:{number}:{m.group(0)}" for m in regex.finditer(line)]
                    elif regex.search(line):
                        results.append(f"{path}:{number}:{line}")

        metadata = {
            "original_total_matches": len(results),
            "was_limited_by_max_results": len(results) > args.max_results,
        }
        if errors:
            metadata["errors"] = errors
        return {"matches": results[: args.max_results], "metadata": metadata}

    def format(self, result: dict) -> dict:
        display.tool_status(f"Matches: {len(result['matches'])}")
        return result


# ---------------------------------------------------------------------------
# search_code
# ---------------------------------------------------------------------------


class SearchCodeArgs(ToolArgs):
    patterns: list[str] = Field(..., min_length=1, description="Search patterns, one per query facet.")
    directory: str = Field(".", description="Root directory of the codebase.")
    extensions: list[str] = Field(default_factory=lambda: list(search.DEFAULT_EXTENSIONS))
    ignore: list[str] = Field(default_factory=lambda: list(search.DEFAULT_IGNORE))
    limit: int = Field(search.TOP_FILES, ge=1, description="Number of top-ranked files to excerpt.")
    case_insensitive: bool = False


class SearchCodeTool(Tool):
    name = "search_code"
    description = (
        "Ranks source files by how many of the given patterns they match and returns "
        "line-numbered code excerpts around the matches."
    )
    input_model = SearchCodeArgs

    def execute(self, args: SearchCodeArgs, context: ExecutionContext) -> dict:
        root = resolve_path(args.directory, context)
        if not os.path.isdir(root):
            raise ToolError(f"Directory does not exist: {root}", path=root)
        selection = search.select_chunks(
            args.patterns,
            root,
            extensions=args.extensions,
            ignore=args.ignore,
            limit=args.limit,
            case_insensitive=args.case_insensitive,
        )
        return selection.model_dump(exclude={"matches"})

    def format(self, result: dict) -> dict:
        display.tool_status(f"Files: {len(result['ranked_files'])}, chunks: {len(result['chunks'])}")
        return result


# ---------------------------------------------------------------------------
# create_file
# ---------------------------------------------------------------------------


class CreateFileArgs(ToolArgs):
    file_path: str = Field(..., description="Path where the file should be created.")
    content: str = Field(..., description="Content to write to the file.")


class CreateFileTool(Tool):
    name = "create_file"
    description = (
        "Creates a new file with the given content. Fails if the file already exists."
    )
    input_model = CreateFileArgs
    requires_confirmation = True

    def execute(self, args: CreateFileArgs, context: ExecutionContext) -> dict:
        path = resolve_path(args.file_path, context)
        if os.path.exists(path):
            raise ToolError(
                f"File already exists at {path}. Skipping creation.", status="warning", path=path
            )
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "x", encoding="utf-8") as fh:
            fh.write(args.content)
        return {"status": "success", "path": path, "message": f"File created successfully at {path}"}

    def format(self, result: dict) -> dict:
        display.tool_status(result["message"])
        return result


# ---------------------------------------------------------------------------
# update_file
# ---------------------------------------------------------------------------


class FileChange(ToolArgs):
    line_start: int = Field(..., description="First line to replace (0-indexed).")
    line_end: int = Field(..., description="Last line to replace (0-indexed, inclusive).")
    new_content: str = Field(..., description="Replacement text. Must keep the file's syntax valid.")


class UpdateFileArgs(ToolArgs):
    file_path: str = Field(..., description="Path of the file to update.")
    changes: list[FileChange] = Field(..., min_length=1)


class UpdateFileTool(Tool):
    name = "update_file"
    description = (
        "Replaces line ranges in an existing file. Read the file first and keep its "
        "structure and indentation intact."
    )
    input_model = UpdateFileArgs
    requires_confirmation = True

    def execute(self, args: UpdateFileArgs, context: ExecutionContext) -> dict:
        path = resolve_path(args.file_path, context)
        if not os.path.isfile(path):
            raise ToolError(f"File does not exist at {path}", status="error", path=path)
        with open(path, encoding="utf-8") as fh:
            lines = fh.read().split("\n")

        for change in args.changes:
            if change.line_start < 0 or change.line_start >= len(lines):
                raise ToolError(
                    f"Invalid line_start: {change.line_start}. File has {len(lines)} lines.", path=path
                )
            if change.line_end < change.line_start or change.line_end >= len(lines):
                raise ToolError(
                    f"Invalid line_end: {change.line_end}. File has {len(lines)} lines "
                    "and line_end must be >= line_start.",
                    path=path,
                )

        ordered = sorted(args.changes, key=lambda c: c.line_start)
        for previous, current in zip(ordered, ordered[1:]):
            if current.line_start <= previous.line_end:
                raise ToolError(
                    f"Overlapping changes: lines {previous.line_start}-{previous.line_end} "
                    f"and {current.line_start}-{current.line_end}.",
                    path=path,
                )

        applied = []
        for change in reversed(ordered):
            replacement = change.new_content.split("\n")
            lines[change.line_start : change.line_end + 1] = replacement
            applied.append(
                {
                    "line_start": change.line_start,
                    "line_end": change.line_end,
                    "lines_changed": change.line_end - change.line_start + 1,
                    "new_line_count": len(replacement),
                }
            )

        with open(path, "w", encoding="utf-8") as fh:
            fh.write("\n".join(lines))

        return {
            "status": "success",
            "path": path,
            "changes_applied": len(applied),
            "changes": applied,
            "message": f"Successfully applied {len(applied)} changes to {path}",
        }

    def format(self, result: dict) -> dict:
        display.tool_status(result["message"])
        return result


# ---------------------------------------------------------------------------
# execute_command
# ---------------------------------------------------------------------------


class ExecuteCommandArgs(ToolArgs):
    command: str = Field(..., description="The command to execute on the system.")
    args: list[str] = Field(default_factory=list, description="Arguments to pass to the command.")
    timeout: int = Field(30000, gt=0, description="Timeout in milliseconds.")


class ExecuteCommandTool(Tool):
    name = "execute_command"
    description = "Executes a shell command in the current working directory and returns its output."
    input_model = ExecuteCommandArgs
    requires_confirmation = True

    def execute(self, args: ExecuteCommandArgs, context: ExecutionContext) -> dict:
        full_command = " ".join([args.command, *args.args])
        display.debug(f"Executing in {context.current_directory}: {full_command}")
        try:
            completed = subprocess.run(
                full_command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=args.timeout / 1000,
                cwd=context.current_directory,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolError(
                f"Command execution timed out after {args.timeout}ms", command=full_command
            ) from exc

        if completed.returncode != 0:
            raise ToolError(
                f"Command exited with status {completed.returncode}",
                command=full_command,
                returncode=completed.returncode,
                stdout=completed.stdout,
                stderr=completed.stderr,
            )
        return {
            "status": "success",
            "command": full_command,
            "stdout": completed.stdout,
            "stderr": completed.stderr,
        }


# ---------------------------------------------------------------------------
# show_info / ask_user
# ---------------------------------------------------------------------------


class ShowInfoArgs(ToolArgs):
    message: str = Field(..., description="Short summary or portion of content to show the user.")
    type: Literal["info", "success", "warning", "error", "debug"] = "info"


class ShowInfoTool(Tool):
    name = "show_info"
    description = "Prints a short coloured message to the user's console."
    input_model = ShowInfoArgs

    def execute(self, args: ShowInfoArgs, context: ExecutionContext) -> dict:
        display.show_info(args.message, args.type)
        return {
            "message": args.message,
            "type": args.type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


class AskUserArgs(ToolArgs):
    question: str = Field(..., description="The question to display to the user.")
    input_type: Literal["input", "password", "confirm", "list"] = "input"
    default_value: str | None = None
    choices: list[str] = Field(default_factory=list, description="Options for the 'list' input type.")


class AskUserTool(Tool):
    name = "ask_user"
    description = "Asks the user for information such as credentials or a choice between options."
    input_model = AskUserArgs

    def execute(self, args: AskUserArgs, context: ExecutionContext) -> dict:
        if args.input_type == "list" and not args.choices:
            raise ToolError("The 'list' input type requires choices.")
        answer = display.ask_user(args.question, args.input_type, args.default_value, args.choices or None)
        return {"question": args.question, "answer": answer}


# ---------------------------------------------------------------------------
# Registry contents
# ---------------------------------------------------------------------------


def default_tools() -> list[Tool]:
    return [
        ListDirectoriesTool(),
        ReadFileTool(),
        FindFilesTool(),
        GrepSearchTool(),
        SearchCodeTool(),
        CreateFileTool(),
        UpdateFileTool(),
        ExecuteCommandTool(),
        GetWebsiteContentTool(),
        WebSearchTool(),
        ReadPdfFileTool(),
        ShowInfoTool(),
        AskUserTool(),
    ]
