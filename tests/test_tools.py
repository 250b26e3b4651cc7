import httpx
import pytest
from unittest.mock import patch
from code_analyzer.context import ExecutionContext
from code_analyzer.registry import ToolError, resolve_path
from code_analyzer.tools import (
    CreateFileArgs,
    CreateFileTool,
    ExecuteCommandArgs,
    ExecuteCommandTool,
    FindFilesArgs,
    FindFilesTool,
    GrepSearchArgs,
    GrepSearchTool,
    ListDirectoriesArgs,
    ListDirectoriesTool,
    ReadFileArgs,
    ReadFileTool,
    SearchCodeArgs,
    SearchCodeTool,
    UpdateFileArgs,
    UpdateFileTool,
)
from code_analyzer.web import (
    GetWebsiteContentArgs,
    GetWebsiteContentTool,
    ReadPdfFileArgs,
    ReadPdfFileTool,
    WebSearchArgs,
    WebSearchTool,
    chunk_text,
)


@pytest.fixture
def context(tmp_path):
    return ExecutionContext(current_directory=str(tmp_path))

# ---------------------------------------------------------------------------
# Generator/API Handling Tests
# ---------------------------------------------------------------------------

@patch("ddgs.DDGS")
def test_web_search_success(mock_ddgs_cls, context):
    mock_instance = mock_ddgs_cls.return_value
    mock_instance.text.return_value = [
        {"title": "Result 1", "body": "Body 1", "href": "http://1.com"}
    ]

    result = WebSearchTool().execute(WebSearchArgs(query="test"), context)

    assert result["results"] == [{"title": "Result 1", "description": "Body 1", "url": "http://1.com"}]
    mock_instance.text.assert_called_once_with("test", max_results=10)

@patch("ddgs.DDGS")
def test_web_search_no_results(mock_ddgs_cls, context):
    mock_ddgs_cls.return_value.text.return_value = []
    result = WebSearchTool().execute(WebSearchArgs(query="ghost"), context)
    assert result["results"] == []

@patch("ddgs.DDGS")
def test_web_search_exception(mock_ddgs_cls, context):
    mock_ddgs_cls.return_value.text.side_effect = Exception("Network timeout")
    with pytest.raises(ToolError, match="Search failed: Network timeout"):
        WebSearchTool().execute(WebSearchArgs(query="crash"), context)

# ---------------------------------------------------------------------------
# Website content & cache
# ---------------------------------------------------------------------------

def _html_response(url, body):
    return httpx.Response(
        200,
        headers={"content-type": "text/html; charset=utf-8"},
        text=body,
        request=httpx.Request("GET", url),
    )

def test_website_content_extracts_text_and_caches(context):
    url = "https://example.com/page"
    html = "<html><head><title>Example</title></head><body><script>var x;</script><p>Hello world</p></body></html>"
    tool = GetWebsiteContentTool()

    with patch("code_analyzer.web.httpx.get", return_value=_html_response(url, html)) as mock_get:
        first = tool.execute(GetWebsiteContentArgs(url=url), context)
        second = tool.execute(GetWebsiteContentArgs(url=url), context)

    assert mock_get.call_count == 1
    assert first["title"] == "Example"
    assert "Hello world" in first["content"]
    assert "var x" not in first["content"]
    assert first["from_cache"] is False
    assert second["from_cache"] is True
    assert context.get_website_content(url)["title"] == "Example"

def test_website_content_force_refresh_refetches(context):
    url = "https://example.com/"
    tool = GetWebsiteContentTool()
    with patch("code_analyzer.web.httpx.get", return_value=_html_response(url, "<p>one</p>")) as mock_get:
        tool.execute(GetWebsiteContentArgs(url=url), context)
        tool.execute(GetWebsiteContentArgs(url=url, force_refresh=True), context)
    assert mock_get.call_count == 2

def test_website_content_rejects_non_http(context):
    with patch("code_analyzer.web.httpx.get") as mock_get:
        with pytest.raises(ToolError, match="Invalid URL"):
            GetWebsiteContentTool().execute(GetWebsiteContentArgs(url="file:///etc/passwd"), context)
    mock_get.assert_not_called()

def test_website_content_http_error(context):
    url = "https://example.com/missing"
    response = httpx.Response(404, request=httpx.Request("GET", url))
    with patch("code_analyzer.web.httpx.get", return_value=response):
        with pytest.raises(ToolError, match="HTTP 404"):
            GetWebsiteContentTool().execute(GetWebsiteContentArgs(url=url), context)
    assert context.get_website_content(url) is None

def test_chunk_text_respects_paragraphs():
    paragraphs = ["word " * 30 for _ in range(10)]
    chunks = chunk_text("\n\n".join(p.strip() for p in paragraphs), chunk_size=2)
    assert len(chunks) > 1
    assert all(len(c) <= 160 * 1.5 for c in chunks)
    assert "".join(chunks).replace("\n", "").replace(" ", "") == "".join(paragraphs).replace(" ", "")

def test_website_content_empty_page_only_has_chunk_zero(context):
    url = "https://example.com/blank"
    tool = GetWebsiteContentTool()
    with patch("code_analyzer.web.httpx.get", return_value=_html_response(url, "<html><body></body></html>")):
        first = tool.execute(GetWebsiteContentArgs(url=url), context)
        with pytest.raises(ToolError, match="out of range"):
            tool.execute(GetWebsiteContentArgs(url=url, chunk_index=5), context)

    assert first["content"] == ""
    assert first["total_chunks"] == 0

def test_read_pdf_resolves_relative_path_at_context(context, tmp_path):
    with pytest.raises(ToolError, match="File does not exist") as info:
        ReadPdfFileTool().execute(ReadPdfFileArgs(path="docs/missing.pdf"), context)
    assert info.value.details["path"] == str(tmp_path / "docs" / "missing.pdf")

# ---------------------------------------------------------------------------
# Filesystem tools
# ---------------------------------------------------------------------------

def test_resolve_path_anchors_at_context(context, tmp_path):
    assert resolve_path("a/b.txt", context) == str(tmp_path / "a" / "b.txt")
    assert resolve_path("/abs/file", context) == "/abs/file"

def test_list_directories_hides_dotfiles(context, tmp_path):
    (tmp_path / ".hidden").write_text("x")
    (tmp_path / "visible.txt").write_text("x")
    (tmp_path / "sub").mkdir()
    tool = ListDirectoriesTool()

    plain = tool.execute(ListDirectoriesArgs(path=str(tmp_path), options=""), context)
    everything = tool.execute(ListDirectoriesArgs(path=str(tmp_path), options="al"), context)

    assert plain["directories"] == ["sub", "visible.txt"]
    names = [entry["name"] for entry in everything["directories"]]
    assert names == [".hidden", "sub", "visible.txt"]
    assert everything["directories"][1]["type"] == "directory"

def test_read_file_missing_raises(context):
    with pytest.raises(ToolError):
        ReadFileTool().execute(ReadFileArgs(path="nope.txt"), context)

def test_find_files_with_depth(context, tmp_path):
    (tmp_path / "top.py").write_text("")
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "deep.py").write_text("")
    tool = FindFilesTool()

    shallow = tool.execute(FindFilesArgs(pattern="*.py", directory=str(tmp_path), max_depth=0), context)
    full = tool.execute(FindFilesArgs(pattern="*.py", directory=str(tmp_path)), context)
    dirs = tool.execute(FindFilesArgs(pattern="pkg", directory=str(tmp_path), type="d", max_depth=0), context)

    assert shallow["files"] == [str(tmp_path / "top.py")]
    assert sorted(full["files"]) == sorted([str(tmp_path / "top.py"), str(tmp_path / "pkg" / "deep.py")])
    assert dirs["files"] == [str(tmp_path / "pkg")]

def test_grep_search_includes_and_limits(context, tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("def alpha():\n    return 1\ndef beta():\n    pass\n")
    (tmp_path / "notes.md").write_text("def gamma\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "dep.py").write_text("def hidden():\n")
    tool = GrepSearchTool()

    result = tool.execute(GrepSearchArgs(search_directory=str(tmp_path), query=r"^def "), context)
    only_src = tool.execute(
        GrepSearchArgs(search_directory=str(tmp_path), query=r"^def ", includes=["src/*.py"]), context
    )
    limited = tool.execute(GrepSearchArgs(search_directory=str(tmp_path), query=r"^def ", max_results=1), context)

    assert len(result["matches"]) == 3
    assert not any("node_modules" in m for m in result["matches"])
    assert only_src["matches"] == [
        f"{tmp_path / 'src' / 'a.py'}:1:def alpha():",
        f"{tmp_path / 'src' / 'a.py'}:3:def beta():",
    ]
    assert len(limited["matches"]) == 1
    assert limited["metadata"]["was_limited_by_max_results"] is True
    assert limited["metadata"]["original_total_matches"] == 3

def test_grep_search_exact_limit_is_not_reported_as_truncated(context, tmp_path):
    (tmp_path / "a.py").write_text("def one():\n    pass\ndef two():\n    pass\n")
    tool = GrepSearchTool()

    exact = tool.execute(GrepSearchArgs(search_directory=str(tmp_path), query=r"^def ", max_results=2), context)
    capped = tool.execute(GrepSearchArgs(search_directory=str(tmp_path), query=r"^def ", max_results=1), context)

    assert len(exact["matches"]) == 2
    assert exact["metadata"] == {"original_total_matches": 2, "was_limited_by_max_results": False}
    assert capped["matches"] == [f"{tmp_path / 'a.py'}:1:def one():"]
    assert capped["metadata"] == {"original_total_matches": 2, "was_limited_by_max_results": True}

def test_search_code_tool_returns_ranked_chunks(context, tmp_path):
    (tmp_path / "a.py").write_text("class Widget:\n    pass\n")
    result = SearchCodeTool().execute(SearchCodeArgs(patterns=["class Widget"]), context)

    assert result["fallback"] is False
    assert result["ranked_files"][0]["file"] == str(tmp_path / "a.py")
    assert result["chunks"][0]["start_line"] == 1
    assert "matches" not in result

# ---------------------------------------------------------------------------
# Side-effecting tools
# ---------------------------------------------------------------------------

def test_create_file_makes_parents(context, tmp_path):
    result = CreateFileTool().execute(CreateFileArgs(file_path="out/dir/new.txt", content="hello"), context)
    assert result["status"] == "success"
    assert (tmp_path / "out" / "dir" / "new.txt").read_text() == "hello"

def test_create_file_never_overwrites(context, tmp_path):
    target = tmp_path / "exists.txt"
    target.write_text("original")
    with pytest.raises(ToolError) as info:
        CreateFileTool().execute(CreateFileArgs(file_path=str(target), content="new"), context)
    assert info.value.details["status"] == "warning"
    assert target.read_text() == "original"

def test_update_file_applies_changes_bottom_up(context, tmp_path):
    target = tmp_path / "f.txt"
    target.write_text("a\nb\nc\nd")
    args = UpdateFileArgs(
        file_path=str(target),
        changes=[
            {"line_start": 0, "line_end": 0, "new_content": "A1\nA2"},
            {"line_start": 2, "line_end": 3, "new_content": "CD"},
        ],
    )

    result = UpdateFileTool().execute(args, context)

    assert result["changes_applied"] == 2
    assert target.read_text() == "A1\nA2\nb\nCD"

def test_update_file_invalid_range_writes_nothing(context, tmp_path):
    target = tmp_path / "f.txt"
    target.write_text("a\nb")
    args = UpdateFileArgs(
        file_path=str(target),
        changes=[
            {"line_start": 0, "line_end": 0, "new_content": "changed"},
            {"line_start": 5, "line_end": 6, "new_content": "x"},
        ],
    )
    with pytest.raises(ToolError, match="Invalid line_start"):
        UpdateFileTool().execute(args, context)
    assert target.read_text() == "a\nb"

def test_update_file_overlapping_changes_write_nothing(context, tmp_path):
    target = tmp_path / "f.txt"
    target.write_text("a\nb\nc\nd")
    args = UpdateFileArgs(
        file_path=str(target),
        changes=[
            {"line_start": 0, "line_end": 2, "new_content": "first"},
            {"line_start": 1, "line_end": 3, "new_content": "second"},
        ],
    )
    with pytest.raises(ToolError, match="Overlapping changes") as info:
        UpdateFileTool().execute(args, context)
    assert info.value.details["path"] == str(target)
    assert target.read_text() == "a\nb\nc\nd"

def test_execute_command_success(context):
    result = ExecuteCommandTool().execute(ExecuteCommandArgs(command="echo", args=["hello"]), context)
    assert result["stdout"].strip() == "hello"

def test_execute_command_runs_in_context_directory(context, tmp_path):
    (tmp_path / "marker.txt").write_text("")
    result = ExecuteCommandTool().execute(ExecuteCommandArgs(command="ls"), context)
    assert "marker.txt" in result["stdout"]

def test_execute_command_nonzero_exit(context):
    with pytest.raises(ToolError) as info:
        ExecuteCommandTool().execute(ExecuteCommandArgs(command="exit", args=["3"]), context)
    assert info.value.details["returncode"] == 3

def test_execute_command_timeout(context):
    with pytest.raises(ToolError, match="timed out"):
        ExecuteCommandTool().execute(ExecuteCommandArgs(command="sleep", args=["2"], timeout=100), context)
