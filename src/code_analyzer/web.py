# web.py
# Remote and document capability tools: website content, web search, PDF text.

import json
import os
import re
from datetime import datetime, timezone

import httpx
from bs4 import BeautifulSoup
from pydantic import Field

from code_analyzer import display
from code_analyzer.context import ExecutionContext
from code_analyzer.registry import Tool, ToolArgs, ToolError, resolve_path

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}
FETCH_TIMEOUT = 10
CHARS_PER_LINE = 80
_NOISE_TAGS = [
    "script", "style", "meta", "link", "noscript", "iframe", "nav", "footer",
    "header", "aside", "svg", "path", "form", "input", "button",
]


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def clean_text(text: str) -> str:
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r" *\n *", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def chunk_text(text: str, chunk_size: int) -> list[str]:
    """
    Split on paragraph breaks into chunks of about chunk_size lines.

    A chunk grows past its target only by whole paragraphs; anything over
    1.5x the target is cut, preferably at a sentence end near the target.
    """
    target = max(1, chunk_size) * CHARS_PER_LINE
    chunks: list[str] = []
    current = ""

    for paragraph in re.split(r"\n\s*\n", text):
        paragraph = paragraph.strip()
        if current and len(current) + len(paragraph) > target:
            chunks.append(current)
            current = paragraph
        elif paragraph:
            current = f"{current}\n\n{paragraph}" if current else paragraph

        while len(current) > target * 1.5:
            split_at = target
            window = current[int(target * 0.8) : int(target * 1.2)]
            sentence_end = re.search(r"[.!?]\s", window)
            if sentence_end:
                split_at = int(target * 0.8) + sentence_end.start() + 2
            chunks.append(current[:split_at])
            current = current[split_at:]

    if current:
        chunks.append(current)
    return chunks


def _extract_text(response: httpx.Response, url: str) -> tuple[str, str]:
    """(title, text) for a fetched resource."""
    content_type = response.headers.get("content-type", "text/html").lower()
    fallback_title = url.rstrip("/").split("/")[-1] or "Untitled Resource"

    if "text/html" in content_type or "xhtml" in content_type:
        soup = BeautifulSoup(response.text, "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else fallback_title
        for tag in soup(_NOISE_TAGS):
            tag.decompose()
        body = soup.body or soup
        return title or fallback_title, clean_text(body.get_text("\n"))

    if "application/json" in content_type:
        try:
            return f"JSON: {fallback_title}", json.dumps(response.json(), indent=2, ensure_ascii=False)
        except ValueError:
            return f"JSON: {fallback_title}", response.text

    if "xml" in content_type:
        soup = BeautifulSoup(response.text, "html.parser")
        return f"XML: {fallback_title}", clean_text(soup.get_text("\n"))

    if content_type.startswith("text/"):
        kind = content_type.split("/")[1].split(";")[0].upper()
        return f"{kind}: {fallback_title}", clean_text(response.text)

    return fallback_title, f"[Binary content detected: {content_type}]"


# ---------------------------------------------------------------------------
# get_website_content
# ---------------------------------------------------------------------------


class GetWebsiteContentArgs(ToolArgs):
    url: str = Field(..., description="The http(s) URL to fetch content from.")
    chunk_size: int = Field(200, ge=1, description="Chunk size in lines (about 80 characters each).")
    chunk_index: int = Field(0, ge=0, description="Index of the chunk to return.")
    force_refresh: bool = Field(False, description="Refetch even if the URL is already cached.")


class GetWebsiteContentTool(Tool):
    name = "get_website_content"
    description = (
        "Reads website content from a URL and returns one chunk of it. Request further "
        "chunk_index values to page through long pages."
    )
    input_model = GetWebsiteContentArgs

    def execute(self, args: GetWebsiteContentArgs, context: ExecutionContext) -> dict:
        if not re.match(r"^https?://", args.url, re.IGNORECASE):
            raise ToolError("Invalid URL format. URL must start with http:// or https://", url=args.url)

        data = None if args.force_refresh else context.get_website_content(args.url)
        from_cache = data is not None
        if data is None:
            data = self._fetch(args.url)
            context.store_website_content(args.url, data)

        chunks = chunk_text(data["text"], args.chunk_size)
        if args.chunk_index >= max(len(chunks), 1):
            raise ToolError(
                f"chunk_index {args.chunk_index} is out of range", total_chunks=len(chunks), url=args.url
            )

        return {
            "url": args.url,
            "title": data["title"],
            "chunk_index": args.chunk_index,
            "total_chunks": len(chunks),
            "content": chunks[args.chunk_index] if chunks else "",
            "content_type": data["content_type"],
            "status_code": data["status_code"],
            "fetched_at": data["fetched_at"],
            "from_cache": from_cache,
        }

    def _fetch(self, url: str) -> dict:
        try:
            response = httpx.get(url, headers=HEADERS, timeout=FETCH_TIMEOUT, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ToolError(
                f"HTTP {exc.response.status_code} fetching {url}", status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise ToolError(f"Request failed: {exc}", url=url) from exc

        title, text = _extract_text(response, url)
        return {
            "url": url,
            "title": title,
            "text": text,
            "content_type": response.headers.get("content-type", "unknown"),
            "status_code": response.status_code,
            "fetched_at": datetime.now(timezone.utc).isoformat(),
            "byte_size": len(text),
        }

    def format(self, result: dict) -> dict:
        source = "cache" if result["from_cache"] else "network"
        display.tool_status(f"Chunk {result['chunk_index'] + 1}/{result['total_chunks']} from {source}")
        return result


# ---------------------------------------------------------------------------
# web_search
# ---------------------------------------------------------------------------


class WebSearchArgs(ToolArgs):
    query: str = Field(..., min_length=1, description="The search query.")
    max_results: int = Field(10, ge=1, le=50)


class WebSearchTool(Tool):
    name = "web_search"
    description = "Performs a DuckDuckGo web search and returns titles, snippets and URLs."
    input_model = WebSearchArgs

    def execute(self, args: WebSearchArgs, context: ExecutionContext) -> dict:
        from ddgs import DDGS

        try:
            # Coerce the generator to a list to ensure actual execution
            rows = list(DDGS().text(args.query, max_results=args.max_results))
        except Exception as exc:
            raise ToolError(f"Search failed: {exc}", query=args.query) from exc

        results = [
            {"title": r.get("title", ""), "description": r.get("body", ""), "url": r.get("href", "")}
            for r in rows
        ]
        return {"query": args.query, "results": results}

    def format(self, result: dict) -> list:
        display.tool_status(f"Matches: {len(result['results'])}")
        return result["results"]


# ---------------------------------------------------------------------------
# read_pdf_file
# ---------------------------------------------------------------------------


class ReadPdfFileArgs(ToolArgs):
    path: str = Field(..., description="Path of the PDF file to read.")
    page_from: int | None = Field(None, ge=1, description="First page to extract (1-based).")
    page_to: int | None = Field(None, ge=1, description="Last page to extract (1-based, inclusive).")


class ReadPdfFileTool(Tool):
    name = "read_pdf_file"
    description = "Reads and extracts text content from a PDF file."
    input_model = ReadPdfFileArgs

    def execute(self, args: ReadPdfFileArgs, context: ExecutionContext) -> dict:
        from pypdf import PdfReader

        path = resolve_path(args.path, context)
        if not os.path.isfile(path):
            raise ToolError(f"File does not exist at {path}", path=path)

        reader = PdfReader(path)
        total = len(reader.pages)
        first = args.page_from or 1
        last = min(args.page_to or total, total)
        if first > last:
            raise ToolError(f"Invalid page range {first}-{last}. Document has {total} pages.", path=path)

        pages = [reader.pages[i].extract_text() or "" for i in range(first - 1, last)]
        return {
            "path": path,
            "total_pages": total,
            "page_from": first,
            "page_to": last,
            "text": "\n\n".join(pages).strip(),
        }
