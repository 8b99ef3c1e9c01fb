"""Helpers for the editor's structured rich-text documents.

Flashcard faces are stored as ProseMirror/TipTap JSON::

    {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "..."}]}]}
"""
from __future__ import annotations

from typing import Any

_BLOCK_TYPES = {"paragraph", "heading", "listItem", "blockquote", "codeBlock"}


def _check_node(node: Any) -> None:
    if not isinstance(node, dict) or not isinstance(node.get("type"), str):
        raise ValueError("rich-text nodes must be objects with a string 'type'")
    if node["type"] == "text" and not isinstance(node.get("text", ""), str):
        raise ValueError("text nodes must carry a string 'text'")
    children = node.get("content")
    if children is None:
        return
    if not isinstance(children, list):
        raise ValueError("rich-text 'content' must be a list")
    for child in children:
        _check_node(child)


def to_document(value: dict[str, Any] | str) -> dict[str, Any]:
    """Wrap plain text in a single-paragraph document; pass documents through."""
    if isinstance(value, dict):
        if value.get("type") != "doc":
            raise ValueError("rich-text payload must have type 'doc'")
        _check_node(value)
        return value
    paragraph: dict[str, Any] = {"type": "paragraph"}
    if value:
        paragraph["content"] = [{"type": "text", "text": value}]
    return {"type": "doc", "content": [paragraph]}


def document_text(doc: dict[str, Any]) -> str:
    """Flatten a document to plain text, one line per block node."""
    lines: list[str] = []
    buf: list[str] = []

    def walk(node: dict[str, Any]) -> None:
        if node.get("type") == "text":
            buf.append(node.get("text", ""))
            return
        if node.get("type") == "hardBreak":
            buf.append("\n")
            return
        for child in node.get("content", []) or []:
            walk(child)
        if node.get("type") in _BLOCK_TYPES:
            lines.append("".join(buf))
            buf.clear()

    walk(doc)
    if buf:
        lines.append("".join(buf))
    return "\n".join(line for line in lines if line).strip()
