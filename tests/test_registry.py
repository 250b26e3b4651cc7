import json
import pytest
from unittest.mock import MagicMock
from pydantic import BaseModel
from code_analyzer.context import ExecutionContext
from code_analyzer.registry import Tool, ToolError, ToolRegistry
from code_analyzer.tools import default_tools


class EchoArgs(BaseModel):
    message: str


class EchoTool(Tool):
    name = "echo"
    description = "Echo a message."
    input_model = EchoArgs

    def __init__(self):
        self.calls = 0

    def execute(self, args, context):
        self.calls += 1
        if args.message == "fail":
            raise ToolError("asked to fail", code=42)
        if args.message == "crash":
            raise RuntimeError("unexpected")
        return {"echo": args.message}

    def format(self, result):
        return result["echo"]


def make_registry(tmp_path, confirm=None, tools=None):
    context = ExecutionContext(current_directory=str(tmp_path))
    registry = ToolRegistry(tools or default_tools(), context, confirm=confirm or (lambda name, args: True))
    return registry, context

# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def test_unknown_tool_is_never_dispatched(tmp_path):
    echo = EchoTool()
    registry, context = make_registry(tmp_path, tools=[echo])

    observation = registry.execute_tool("delete_everything", {"path": "/"})

    assert "Unknown tool" in observation
    assert "delete_everything" in observation
    assert echo.calls == 0
    assert context.get_messages()[-1].content == observation

def test_duplicate_registration_rejected(tmp_path):
    with pytest.raises(ValueError, match="already registered"):
        make_registry(tmp_path, tools=[EchoTool(), EchoTool()])

def test_registry_is_read_only(tmp_path):
    registry, _ = make_registry(tmp_path, tools=[EchoTool()])
    with pytest.raises(TypeError):
        registry.tools["other"] = EchoTool()

# ---------------------------------------------------------------------------
# Schema gate
# ---------------------------------------------------------------------------

def test_create_file_missing_content_is_rejected(tmp_path):
    confirm = MagicMock(return_value=True)
    registry, _ = make_registry(tmp_path, confirm=confirm)
    target = tmp_path / "new.txt"

    observation = registry.execute_tool("create_file", {"file_path": str(target)})

    assert observation.startswith("create_file INVALID ARGUMENTS")
    assert "content" in observation
    assert not target.exists()
    confirm.assert_not_called()

def test_wrong_type_never_reaches_executor(tmp_path):
    echo = EchoTool()
    registry, _ = make_registry(tmp_path, tools=[echo])

    observation = registry.execute_tool("echo", {"message": ["not", "a", "string"]})

    assert observation.startswith("echo INVALID ARGUMENTS")
    assert echo.calls == 0

def test_extra_arguments_are_rejected(tmp_path):
    registry, _ = make_registry(tmp_path)
    observation = registry.execute_tool("read_file_content", {"path": "x", "mode": "rb"})
    assert "INVALID ARGUMENTS" in observation

def test_none_arguments_are_validated(tmp_path):
    echo = EchoTool()
    registry, _ = make_registry(tmp_path, tools=[echo])
    observation = registry.execute_tool("echo", None)
    assert "INVALID ARGUMENTS" in observation
    assert echo.calls == 0

# ---------------------------------------------------------------------------
# Confirmation gate
# ---------------------------------------------------------------------------

def test_declined_update_leaves_file_unchanged(tmp_path):
    target = tmp_path / "keep.txt"
    target.write_bytes(b"line one\nline two\n")
    confirm = MagicMock(return_value=False)
    registry, _ = make_registry(tmp_path, confirm=confirm)

    observation = registry.execute_tool(
        "update_file",
        {"file_path": str(target), "changes": [{"line_start": 0, "line_end": 0, "new_content": "hacked"}]},
    )

    assert observation.startswith("update_file ABORTED")
    assert "declined" in observation
    assert target.read_bytes() == b"line one\nline two\n"
    confirm.assert_called_once()
    assert confirm.call_args[0][0] == "update_file"

def test_declined_is_distinct_from_error(tmp_path):
    registry, _ = make_registry(tmp_path, confirm=lambda name, args: False)
    observation = registry.execute_tool("execute_command", {"command": "echo", "args": ["hi"]})
    assert "ABORTED" in observation
    assert "ERROR" not in observation

def test_confirmation_interrupted_counts_as_no(tmp_path):
    def confirm(name, args):
        raise EOFError()

    registry, _ = make_registry(tmp_path, confirm=confirm)
    target = tmp_path / "never.txt"
    observation = registry.execute_tool("create_file", {"file_path": str(target), "content": "x"})

    assert "ABORTED" in observation
    assert not target.exists()

def test_broken_confirmation_prompt_counts_as_no(tmp_path):
    def confirm(name, args):
        raise RuntimeError("terminal gone")

    registry, _ = make_registry(tmp_path, confirm=confirm)
    target = tmp_path / "never.txt"
    observation = registry.execute_tool("create_file", {"file_path": str(target), "content": "x"})

    assert observation.startswith("create_file ABORTED")
    assert not target.exists()

def test_tools_without_confirmation_skip_prompt(tmp_path):
    confirm = MagicMock(return_value=False)
    (tmp_path / "a.txt").write_text("hello")
    registry, _ = make_registry(tmp_path, confirm=confirm)

    observation = registry.execute_tool("read_file_content", {"path": "a.txt"})

    assert observation == 'read_file_content RESULT: "hello"'
    confirm.assert_not_called()

# ---------------------------------------------------------------------------
# Execution outcomes
# ---------------------------------------------------------------------------

def test_success_is_formatted_and_recorded(tmp_path):
    registry, context = make_registry(tmp_path, tools=[EchoTool()])

    observation = registry.execute_tool("echo", {"message": "hi"})

    assert observation == 'echo RESULT: "hi"'
    assert context.get_messages()[-1].role == "user"
    assert context.get_messages()[-1].content == observation

def test_tool_error_payload_is_serialized(tmp_path):
    registry, _ = make_registry(tmp_path, tools=[EchoTool()])

    observation = registry.execute_tool("echo", {"message": "fail"})

    assert observation.startswith("echo ERROR: ")
    payload = json.loads(observation[len("echo ERROR: "):])
    assert payload == {"error": "asked to fail", "code": 42}

def test_unexpected_exception_is_normalized(tmp_path):
    registry, _ = make_registry(tmp_path, tools=[EchoTool()])

    observation = registry.execute_tool("echo", {"message": "crash"})

    payload = json.loads(observation[len("echo ERROR: "):])
    assert payload == {"error": "unexpected", "type": "RuntimeError"}

def test_empty_result_is_not_an_error(tmp_path):
    registry, _ = make_registry(tmp_path)
    (tmp_path / "empty").mkdir()

    observation = registry.execute_tool("list_directories", {"path": "empty", "options": ""})

    assert observation == "list_directories RESULT: []"

def test_record_false_leaves_history_untouched(tmp_path):
    registry, context = make_registry(tmp_path, tools=[EchoTool()])
    registry.execute_tool("echo", {"message": "hi"}, record=False)
    assert context.get_messages() == []

# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

def test_function_schemas_cover_every_tool(tmp_path):
    registry, _ = make_registry(tmp_path)
    manifest = registry.get_function_schemas()

    assert [entry["name"] for entry in manifest] == registry.names()
    for entry in manifest:
        assert entry["description"]
        assert entry["parameters"]["type"] == "object"

    create = next(e for e in manifest if e["name"] == "create_file")
    assert set(create["parameters"]["required"]) == {"file_path", "content"}
    assert create["parameters"]["additionalProperties"] is False

def test_side_effecting_tools_require_confirmation():
    flagged = {tool.name for tool in default_tools() if tool.requires_confirmation}
    assert flagged == {"create_file", "update_file", "execute_command"}
