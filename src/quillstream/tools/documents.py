"""Read-only tools over a snapshot of project documents.

The snapshot is handed in by the caller for one chat call; these tools
never touch the filesystem or the network.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from quillstream.tools.base import Tool, dump_payload, error_payload
from quillstream.tools.registry import ToolRegistry
from quillstream.types import ProjectDocument, ToolParameter

MAX_SEARCH_RESULTS = 10
SNIPPET_RADIUS = 50
FALLBACK_SNIPPET_CHARS = 100


def make_snippet(content: str, query: str) -> str:
    """Return the text around the first case-insensitive match of *query*.

    The window spans ``SNIPPET_RADIUS`` characters on each side; its start
    is moved back to the beginning of the word it would otherwise cut. With
    no match in *content*, the first ``FALLBACK_SNIPPET_CHARS`` characters
    are returned.
    """
    pos = content.lower().find(query.lower())
    if pos < 0:
        return content[:FALLBACK_SNIPPET_CHARS]

    start = max(pos - SNIPPET_RADIUS, 0)
    end = min(pos + len(query) + SNIPPET_RADIUS, len(content))
    i = start - 1
    while i >= 0 and not content[i].isspace():
        i -= 1
    if i >= 0:
        start = i + 1
    return content[start:end]


class _DocumentTool(Tool):
    def __init__(self, documents: Sequence[ProjectDocument]) -> None:
        self._documents = list(documents)


class SearchDocumentsTool(_DocumentTool):
    """Case-insensitive substring search across titles and contents."""

    name = "search_documents"
    description = (
        "Search the project's documents and return matching titles "
        "with a snippet around the match."
    )
    parameters = [
        ToolParameter(name="query", type="string", description="Search keywords"),
    ]

    async def execute(self, **kwargs: Any) -> str:
        query = kwargs.get("query")
        if not isinstance(query, str) or not query:
            return error_payload("Search query is empty")

        needle = query.lower()
        results: list[dict[str, str]] = []
        for doc in self._documents:
            if needle not in doc.title.lower() and needle not in doc.content.lower():
                continue
            results.append({
                "id": doc.id,
                "title": doc.title,
                "snippet": make_snippet(doc.content, query),
            })
            if len(results) >= MAX_SEARCH_RESULTS:
                break

        return dump_payload({"results": results, "total": len(results)})


class ReadDocumentTool(_DocumentTool):
    """Return one document's full content."""

    name = "read_document"
    description = "Read the full content of a document by its id."
    parameters = [
        ToolParameter(name="document_id", type="string", description="Document id"),
    ]

    async def execute(self, **kwargs: Any) -> str:
        doc_id = kwargs.get("document_id")
        if not isinstance(doc_id, str) or not doc_id:
            return error_payload("Document id is empty")

        for doc in self._documents:
            if doc.id == doc_id:
                return dump_payload({
                    "id": doc.id,
                    "title": doc.title,
                    "content": doc.content,
                    "char_count": len(doc.content),
                })
        return error_payload(f"Document not found: {doc_id}")


class GetDocumentStatsTool(_DocumentTool):
    """Document count, total characters and a per-document summary."""

    name = "get_document_stats"
    description = (
        "Get statistics about the current project's documents, "
        "including the document count and total characters."
    )
    parameters: list[ToolParameter] = []

    async def execute(self, **kwargs: Any) -> str:
        return dump_payload({
            "total_documents": len(self._documents),
            "total_characters": sum(len(d.content) for d in self._documents),
            "documents": [
                {"id": d.id, "title": d.title, "char_count": len(d.content)}
                for d in self._documents
            ],
        })


def load_documents(
    raw: Iterable[ProjectDocument | Mapping[str, Any]] | None,
) -> list[ProjectDocument]:
    """Normalize caller-supplied documents into ``ProjectDocument`` objects."""
    docs: list[ProjectDocument] = []
    for item in raw or []:
        docs.append(item if isinstance(item, ProjectDocument) else ProjectDocument.from_mapping(item))
    return docs


def build_document_registry(documents: Sequence[ProjectDocument]) -> ToolRegistry:
    """Registry holding the three document tools bound to *documents*."""
    registry = ToolRegistry()
    for tool_cls in (SearchDocumentsTool, ReadDocumentTool, GetDocumentStatsTool):
        registry.register(tool_cls(documents))
    return registry
