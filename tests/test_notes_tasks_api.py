"""
Tests for notes, folders, tasks and tags endpoints
"""


class TestNotes:
    def test_create_in_folder(self, client, alice):
        folder = client.post("/api/folders", json={"name": "Physics"}, headers=alice).json()
        response = client.post(
            "/api/notes",
            json={"title": "Kinematics", "content": "v = u + at", "folder_id": folder["id"]},
            headers=alice,
        )
        assert response.status_code == 201
        assert response.json()["folder_id"] == folder["id"]

        folders = client.get("/api/folders", headers=alice).json()
        assert folders[0]["note_count"] == 1

    def test_foreign_folder_rejected(self, client, alice, bob):
        folder = client.post("/api/folders", json={"name": "Private"}, headers=bob).json()
        response = client.post(
            "/api/notes",
            json={"title": "Sneaky", "folder_id": folder["id"]},
            headers=alice,
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Folder not found"}

    def test_list_paginates_and_filters(self, client, alice):
        folder = client.post("/api/folders", json={"name": "Maths"}, headers=alice).json()
        for i in range(3):
            client.post(
                "/api/notes",
                json={"title": f"Note {i}", "folder_id": folder["id"]},
                headers=alice,
            )
        client.post("/api/notes", json={"title": "Loose"}, headers=alice)

        body = client.get("/api/notes?limit=2", headers=alice).json()
        assert body["total"] == 4
        assert len(body["items"]) == 2

        body = client.get(f"/api/notes?folderId={folder['id']}", headers=alice).json()
        assert body["total"] == 3

    def test_update_and_delete(self, client, alice):
        note = client.post("/api/notes", json={"title": "Draft"}, headers=alice).json()
        updated = client.patch(
            f"/api/notes/{note['id']}", json={"content": "Final text"}, headers=alice
        ).json()
        assert updated["title"] == "Draft"
        assert updated["content"] == "Final text"

        assert client.delete(f"/api/notes/{note['id']}", headers=alice).status_code == 204
        assert client.get(f"/api/notes/{note['id']}", headers=alice).status_code == 404

    def test_notes_are_private(self, client, alice, bob):
        note = client.post("/api/notes", json={"title": "Diary"}, headers=alice).json()
        assert client.get(f"/api/notes/{note['id']}", headers=bob).status_code == 404
        assert client.get("/api/notes", headers=bob).json()["total"] == 0


class TestTasks:
    def test_create_and_complete(self, client, alice):
        task = client.post(
            "/api/tasks",
            json={"title": "Revise chapter 3", "priority": 2},
            headers=alice,
        ).json()
        assert task["completed"] is False
        assert task["completed_at"] is None

        done = client.patch(
            f"/api/tasks/{task['id']}", json={"completed": True}, headers=alice
        ).json()
        assert done["completed"] is True
        assert done["completed_at"] is not None

        reopened = client.patch(
            f"/api/tasks/{task['id']}", json={"completed": False}, headers=alice
        ).json()
        assert reopened["completed_at"] is None

    def test_completion_awards_xp_once_per_transition(self, client, alice):
        task = client.post("/api/tasks", json={"title": "Essay"}, headers=alice).json()
        before = client.get("/api/gamification/progress", headers=alice).json()

        client.patch(f"/api/tasks/{task['id']}", json={"completed": True}, headers=alice)
        client.patch(f"/api/tasks/{task['id']}", json={"completed": True}, headers=alice)

        after = client.get("/api/gamification/progress", headers=alice).json()
        assert after["progress"]["total_xp"] - before["progress"]["total_xp"] == 10

    def test_filter_by_completed(self, client, alice):
        first = client.post("/api/tasks", json={"title": "One"}, headers=alice).json()
        client.post("/api/tasks", json={"title": "Two"}, headers=alice)
        client.patch(f"/api/tasks/{first['id']}", json={"completed": True}, headers=alice)

        open_tasks = client.get("/api/tasks?completed=false", headers=alice).json()
        assert [t["title"] for t in open_tasks] == ["Two"]

    def test_invalid_priority(self, client, alice):
        response = client.post("/api/tasks", json={"title": "x", "priority": 9}, headers=alice)
        assert response.status_code == 422

    def test_missing_task(self, client, alice):
        response = client.patch("/api/tasks/nope", json={"title": "x"}, headers=alice)
        assert response.status_code == 404
        assert response.json() == {"error": "Task not found"}


class TestTags:
    def test_duplicate_tag(self, client, alice):
        assert client.post("/api/tags", json={"name": "exam"}, headers=alice).status_code == 201
        response = client.post("/api/tags", json={"name": "exam"}, headers=alice)
        assert response.status_code == 409

    def test_usage_count(self, client, alice):
        tag = client.post("/api/tags", json={"name": "exam"}, headers=alice).json()
        client.post("/api/notes", json={"title": "A", "tag_ids": [tag["id"]]}, headers=alice)
        client.post("/api/tasks", json={"title": "B", "tag_ids": [tag["id"]]}, headers=alice)

        tags = client.get("/api/tags", headers=alice).json()
        assert tags[0]["usage_count"] == 2

    def test_foreign_tag_ids_ignored(self, client, alice, bob):
        tag = client.post("/api/tags", json={"name": "secret"}, headers=bob).json()
        note = client.post(
            "/api/notes", json={"title": "A", "tag_ids": [tag["id"]]}, headers=alice
        ).json()
        assert note["tags"] == []


class TestFolderDetail:
    def test_get_folder_with_notes(self, client, alice):
        folder = client.post("/api/folders", json={"name": "Biology"}, headers=alice).json()
        client.post(
            "/api/notes", json={"title": "Cells", "folder_id": folder["id"]}, headers=alice
        )
        client.post("/api/notes", json={"title": "Elsewhere"}, headers=alice)

        body = client.get(f"/api/folders/{folder['id']}", headers=alice).json()
        assert body["name"] == "Biology"
        assert body["note_count"] == 1
        assert [n["title"] for n in body["notes"]] == ["Cells"]

    def test_patch_folder(self, client, alice):
        folder = client.post("/api/folders", json={"name": "Bio"}, headers=alice).json()
        response = client.patch(
            f"/api/folders/{folder['id']}",
            json={"name": "Biology", "color": "#00ff00"},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Biology"
        assert response.json()["color"] == "#00ff00"

    def test_foreign_folder_is_not_found(self, client, alice, bob):
        folder = client.post("/api/folders", json={"name": "Private"}, headers=bob).json()
        assert client.get(f"/api/folders/{folder['id']}", headers=alice).status_code == 404
        response = client.patch(
            f"/api/folders/{folder['id']}", json={"name": "Mine"}, headers=alice
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Folder not found"}


class TestTaskOrder:
    def test_new_tasks_append_to_the_end(self, client, alice):
        first = client.post("/api/tasks", json={"title": "One"}, headers=alice).json()
        second = client.post("/api/tasks", json={"title": "Two"}, headers=alice).json()
        assert (first["order"], second["order"]) == (0, 1)

    def test_reorder(self, client, alice):
        ids = [
            client.post("/api/tasks", json={"title": t}, headers=alice).json()["id"]
            for t in ("A", "B", "C")
        ]
        response = client.post(
            "/api/tasks/reorder",
            json={"tasks": [{"id": ids[2], "order": 0}, {"id": ids[0], "order": 1}, {"id": ids[1], "order": 2}]},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["success"] is True

        titles = [t["title"] for t in client.get("/api/tasks", headers=alice).json()]
        assert titles == ["C", "A", "B"]

    def test_reorder_leaves_other_users_tasks_alone(self, client, alice, bob):
        theirs = client.post("/api/tasks", json={"title": "Bob's"}, headers=bob).json()
        response = client.post(
            "/api/tasks/reorder",
            json={"tasks": [{"id": theirs["id"], "order": 7}]},
            headers=alice,
        )
        assert response.json()["updated"] == 0
        assert client.get("/api/tasks", headers=bob).json()[0]["order"] == 0

    def test_reorder_rejects_negative_order(self, client, alice):
        response = client.post(
            "/api/tasks/reorder", json={"tasks": [{"id": "x", "order": -1}]}, headers=alice
        )
        assert response.status_code == 422


class TestTagDetail:
    def test_linked_items(self, client, alice):
        tag = client.post("/api/tags", json={"name": "exam"}, headers=alice).json()
        note = client.post(
            "/api/notes", json={"title": "Revision", "tag_ids": [tag["id"]]}, headers=alice
        ).json()
        task = client.post(
            "/api/tasks", json={"title": "Book room", "tag_ids": [tag["id"]]}, headers=alice
        ).json()

        body = client.get(f"/api/tags/{tag['id']}", headers=alice).json()
        assert body["usage_count"] == 2
        assert body["notes"] == [{"id": note["id"], "title": "Revision"}]
        assert body["tasks"] == [{"id": task["id"], "title": "Book room"}]
        assert body["flashcards"] == []

    def test_rename_trims_and_rejects_case_insensitive_duplicate(self, client, alice):
        client.post("/api/tags", json={"name": "Exam"}, headers=alice)
        tag = client.post("/api/tags", json={"name": "quiz"}, headers=alice).json()

        response = client.patch(f"/api/tags/{tag['id']}", json={"name": "  exam "}, headers=alice)
        assert response.status_code == 409

        response = client.patch(f"/api/tags/{tag['id']}", json={"name": " test "}, headers=alice)
        assert response.status_code == 200
        assert response.json()["name"] == "test"

    def test_rename_to_own_name_in_other_case(self, client, alice):
        tag = client.post("/api/tags", json={"name": "exam"}, headers=alice).json()
        response = client.patch(f"/api/tags/{tag['id']}", json={"name": "Exam"}, headers=alice)
        assert response.status_code == 200
        assert response.json()["name"] == "Exam"

    def test_foreign_tag_is_not_found(self, client, alice, bob):
        tag = client.post("/api/tags", json={"name": "secret"}, headers=bob).json()
        assert client.get(f"/api/tags/{tag['id']}", headers=alice).status_code == 404
        response = client.patch(f"/api/tags/{tag['id']}", json={"color": "#000"}, headers=alice)
        assert response.status_code == 404


class TestRemoveTagFromItem:
    def test_tag_kept_while_still_in_use(self, client, alice):
        tag = client.post("/api/tags", json={"name": "exam"}, headers=alice).json()
        note = client.post(
            "/api/notes", json={"title": "A", "tag_ids": [tag["id"]]}, headers=alice
        ).json()
        client.post("/api/tasks", json={"title": "B", "tag_ids": [tag["id"]]}, headers=alice)

        response = client.post(
            f"/api/tags/{tag['id']}/remove-from-item",
            json={"item_type": "note", "item_id": note["id"]},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["deleted"] is False
        assert client.get(f"/api/notes/{note['id']}", headers=alice).json()["tags"] == []
        assert client.get(f"/api/tags/{tag['id']}", headers=alice).json()["usage_count"] == 1

    def test_unused_tag_is_deleted(self, client, alice):
        tag = client.post("/api/tags", json={"name": "once"}, headers=alice).json()
        task = client.post(
            "/api/tasks", json={"title": "B", "tag_ids": [tag["id"]]}, headers=alice
        ).json()

        body = client.post(
            f"/api/tags/{tag['id']}/remove-from-item",
            json={"item_type": "task", "item_id": task["id"]},
            headers=alice,
        ).json()
        assert body["success"] is True
        assert body["deleted"] is True
        assert client.get(f"/api/tags/{tag['id']}", headers=alice).status_code == 404

    def test_invalid_item_type(self, client, alice):
        tag = client.post("/api/tags", json={"name": "exam"}, headers=alice).json()
        response = client.post(
            f"/api/tags/{tag['id']}/remove-from-item",
            json={"item_type": "folder", "item_id": "x"},
            headers=alice,
        )
        assert response.status_code == 422

    def test_foreign_tag(self, client, alice, bob):
        tag = client.post("/api/tags", json={"name": "secret"}, headers=bob).json()
        response = client.post(
            f"/api/tags/{tag['id']}/remove-from-item",
            json={"item_type": "note", "item_id": "x"},
            headers=alice,
        )
        assert response.status_code == 404
