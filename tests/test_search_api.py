"""
Tests for the advanced search endpoint
"""
import pytest


@pytest.fixture
def content(client, alice, bob):
    tag = client.post("/api/tags", json={"name": "biology"}, headers=alice).json()
    folder = client.post("/api/folders", json={"name": "Cells"}, headers=alice).json()
    client.post(
        "/api/notes",
        json={
            "title": "Mitochondria",
            "content": "The powerhouse of the cell",
            "folder_id": folder["id"],
            "tag_ids": [tag["id"]],
        },
        headers=alice,
    )
    client.post(
        "/api/tasks",
        json={"title": "Read about the cell membrane", "priority": 3},
        headers=alice,
    )
    deck = client.post("/api/decks", json={"name": "Bio"}, headers=alice).json()
    client.post(
        f"/api/decks/{deck['id']}/flashcards",
        json={"front": "What is a cell?", "back": "The basic unit of life"},
        headers=alice,
    )
    client.post("/api/notes", json={"title": "Bob's cell notes"}, headers=bob)
    return {"tag": tag, "folder": folder, "deck": deck}


def _types(body) -> set[str]:
    return {r["type"] for r in body["results"]}


def test_searches_all_collections(client, alice, content):
    body = client.get("/api/search/advanced?q=cell", headers=alice).json()
    assert body["query"] == "cell"
    assert {"note", "task", "flashcard", "folder"} <= _types(body)
    assert body["count"] == len(body["results"])
    assert all("Bob" not in r["title"] for r in body["results"])


def test_inline_type_filter(client, alice, content):
    body = client.get("/api/search/advanced?q=type:task cell", headers=alice).json()
    assert _types(body) == {"task"}
    assert body["filters"]["type"] == "task"


def test_task_only_filter_skips_other_collections(client, alice, content):
    body = client.get("/api/search/advanced?q=cell&priority=3", headers=alice).json()
    assert _types(body) == {"task"}


def test_tag_filter(client, alice, content):
    body = client.get("/api/search/advanced?q=&tags=biology", headers=alice).json()
    assert [r["title"] for r in body["results"]] == ["Mitochondria"]
    assert body["results"][0]["tags"] == ["biology"]


def test_folder_filter(client, alice, content):
    body = client.get(
        f"/api/search/advanced?folderId={content['folder']['id']}", headers=alice
    ).json()
    assert _types(body) == {"note"}


def test_highlight(client, alice, content):
    body = client.get("/api/search/advanced?q=powerhouse", headers=alice).json()
    (result,) = body["results"]
    assert "<mark>powerhouse</mark>" in result["highlight"]["content"]


def test_suggestions(client, alice, content):
    suggestions = client.get("/api/search/suggestions?q=mito", headers=alice).json()
    assert suggestions == ["Mitochondria"]
    assert client.get("/api/search/suggestions?q=m", headers=alice).json() == []


def test_invalid_type(client, alice):
    response = client.get("/api/search/advanced?type=video", headers=alice)
    assert response.status_code == 422


def test_suggestions_are_distinct_before_truncation(client, alice):
    for _ in range(3):
        client.post("/api/notes", json={"title": "Osmosis"}, headers=alice)
    for i in range(5):
        client.post("/api/tasks", json={"title": f"Osmosis lab {i}"}, headers=alice)

    suggestions = client.get("/api/search/suggestions?q=osmo", headers=alice).json()
    assert len(suggestions) == 5
    assert len(set(suggestions)) == 5
    assert "Osmosis" in suggestions


def test_highlight_escapes_stored_markup(client, alice):
    client.post(
        "/api/notes",
        json={"title": "Markup", "content": "<img src=x onerror=alert(1)> osmosis"},
        headers=alice,
    )
    body = client.get("/api/search/advanced?q=osmosis", headers=alice).json()
    snippet = body["results"][0]["highlight"]["content"]
    assert "<img" not in snippet
    assert "&lt;img" in snippet
    assert "<mark>osmosis</mark>" in snippet
