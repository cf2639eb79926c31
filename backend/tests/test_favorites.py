from __future__ import annotations


def _file(client, headers, title: str) -> int:
    response = client.post("/documents", json={"title": title, "type": "FILE"}, headers=headers)
    assert response.status_code == 201
    return response.get_json()["item"]["id"]


def test_toggle_and_list_favorites(client, auth_headers):
    alice = auth_headers("alice")
    document_id = _file(client, alice, "fav.txt")

    status = client.get(f"/documents/{document_id}/favorite", headers=alice).get_json()
    assert status == {"is_favorite": False, "item": None}

    toggled = client.post(f"/documents/{document_id}/favorite", headers=alice).get_json()
    assert toggled["is_favorite"] is True

    items = client.get("/favorites", headers=alice).get_json()["items"]
    assert [item["document_id"] for item in items] == [document_id]

    toggled = client.post(f"/documents/{document_id}/favorite", headers=alice).get_json()
    assert toggled["is_favorite"] is False
    assert client.get("/favorites", headers=alice).get_json()["items"] == []


def test_custom_title_requires_an_existing_favorite(client, auth_headers):
    alice = auth_headers("alice")
    document_id = _file(client, alice, "named.txt")

    response = client.put(f"/documents/{document_id}/favorite", json={"custom_title": "Mine"}, headers=alice)
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "FAVORITE_NOT_FOUND"

    client.post(f"/documents/{document_id}/favorite", headers=alice)
    response = client.put(f"/documents/{document_id}/favorite", json={"custom_title": "  Mine  "}, headers=alice)
    assert response.status_code == 200
    assert response.get_json()["item"]["custom_title"] == "Mine"

    response = client.put(f"/documents/{document_id}/favorite", json={"custom_title": "x" * 256}, headers=alice)
    assert response.status_code == 400


def test_remove_favorite(client, auth_headers):
    alice = auth_headers("alice")
    document_id = _file(client, alice, "gone.txt")

    assert client.delete(f"/documents/{document_id}/favorite", headers=alice).status_code == 404
    client.post(f"/documents/{document_id}/favorite", headers=alice)
    assert client.delete(f"/documents/{document_id}/favorite", headers=alice).status_code == 200
    assert client.delete(f"/documents/{document_id}/favorite", headers=alice).status_code == 404


def test_favorites_need_view_access_and_skip_deleted_documents(client, auth_headers, users):
    alice = auth_headers("alice")
    document_id = _file(client, alice, "private.txt")

    assert client.post(f"/documents/{document_id}/favorite", headers=auth_headers("bob")).status_code == 404

    client.post(f"/documents/{document_id}/permissions", json={"user_id": users["bob"], "permission": "VIEW"}, headers=alice)
    bob = auth_headers("bob")
    assert client.post(f"/documents/{document_id}/favorite", headers=bob).get_json()["is_favorite"] is True

    client.delete(f"/documents/{document_id}", headers=alice)
    assert client.get("/favorites", headers=bob).get_json()["items"] == []


def test_revoked_access_hides_favorite_and_blocks_edits(client, auth_headers, users):
    alice = auth_headers("alice")
    bob = auth_headers("bob")
    document_id = _file(client, alice, "shared.txt")

    client.post(f"/documents/{document_id}/permissions", json={"user_id": users["bob"], "permission": "VIEW"}, headers=alice)
    assert client.post(f"/documents/{document_id}/favorite", headers=bob).get_json()["is_favorite"] is True

    assert client.delete(f"/documents/{document_id}/permissions/{users['bob']}", headers=alice).status_code == 200
    assert client.patch(f"/documents/{document_id}", json={"title": "Renamed after revoke"}, headers=alice).status_code == 200

    assert client.get(f"/documents/{document_id}", headers=bob).status_code == 404
    assert client.get("/favorites", headers=bob).get_json()["items"] == []

    renamed = client.put(f"/documents/{document_id}/favorite", json={"custom_title": "Still mine"}, headers=bob)
    assert renamed.status_code == 404
    assert renamed.get_json()["error"]["code"] == "DOCUMENT_NOT_FOUND"
    assert client.delete(f"/documents/{document_id}/favorite", headers=bob).status_code == 404


def test_favorite_title_cannot_be_set_on_deleted_document(client, auth_headers):
    alice = auth_headers("alice")
    document_id = _file(client, alice, "trash.txt")
    client.post(f"/documents/{document_id}/favorite", headers=alice)

    client.delete(f"/documents/{document_id}", headers=alice)
    response = client.put(f"/documents/{document_id}/favorite", json={"custom_title": "Old"}, headers=alice)
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "DOCUMENT_NOT_FOUND"
