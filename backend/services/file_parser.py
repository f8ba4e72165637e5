"""
Multi-File Parser - Split a generation result into named files
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from models.generation import GeneratedFile

# ```language:filename on the fence line, body up to the next fence
FILE_BLOCK_PATTERN = re.compile(r"```(\w+):([^\n]+)\n(.*?)```", re.DOTALL)
HTML_DOCUMENT_PATTERN = re.compile(r"<!DOCTYPE html>.*</html>", re.DOTALL | re.IGNORECASE)
HTML_START_PATTERN = re.compile(r"<!DOCTYPE html>.*", re.DOTALL | re.IGNORECASE)
HTML_CLOSE_PATTERN = re.compile(r"</html>", re.IGNORECASE)


def extract_html_document(content: str) -> str | None:
    """Complete document from the doctype through the last closing tag"""
    match = HTML_DOCUMENT_PATTERN.search(content)
    return match.group(0) if match else None


def extract_partial_document(content: str) -> str | None:
    """Best-effort document for live preview while the stream is still open"""
    match = HTML_START_PATTERN.search(content)
    if not match:
        return None
    document = match.group(0)
    if not HTML_CLOSE_PATTERN.search(document):
        document += "\n</html>"
    return document


def parse_multi_file_response(content: str) -> list[GeneratedFile]:
    """Extract files from filename-tagged fenced blocks, falling back to a single HTML document.

    Duplicate filenames are kept in order of appearance. An empty list is a
    valid result when neither shape is present.
    """
    files = [
        GeneratedFile(
            language=language,
            filename=filename.strip(),
            content=body.strip(),
        )
        for language, filename, body in FILE_BLOCK_PATTERN.findall(content)
    ]

    if not files:
        document = extract_html_document(content)
        if document:
            files.append(GeneratedFile(language="html", filename="index.html", content=document))

    return files


def serialize_files(files: Iterable[GeneratedFile]) -> str:
    """Render files back into fenced language:filename blocks"""
    blocks = [f"```{f.language}:{f.filename}\n{f.content}\n```" for f in files]
    return "\n\n".join(blocks)
