"""
Tests for rich-text document wrapping and validation
"""
import pytest

from studybuddy.services.rich_text import document_text, to_document


def test_plain_text_is_wrapped():
    doc = to_document("Femur")
    assert doc == {
        "type": "doc",
        "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Femur"}]}],
    }
    assert document_text(doc) == "Femur"


def test_valid_document_passes_through():
    doc = {
        "type": "doc",
        "content": [
            {"type": "heading", "content": [{"type": "text", "text": "Bones"}]},
            {"type": "paragraph"},
        ],
    }
    assert to_document(doc) is doc


@pytest.mark.parametrize(
    "doc",
    [
        {"type": "paragraph"},
        {"type": "doc", "content": ["oops"]},
        {"type": "doc", "content": {"type": "paragraph"}},
        {"type": "doc", "content": [{"content": []}]},
        {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": 3}]}]},
    ],
)
def test_malformed_documents_raise_value_error(doc):
    with pytest.raises(ValueError):
        to_document(doc)
