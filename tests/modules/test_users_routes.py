"""User directory routes.

Invariants:
    - Users may update and delete only their own record
    - Deleting a user removes their assignments and memberships first
    - Search is a case-insensitive email substring match capped at 10 rows
"""


async def test_me_returns_current_user(client, make_user):
    alice = make_user("Alice", "alice@example.com")

    res = await client.get("/api/users/me", headers=alice["headers"])

    assert res.status_code == 200
    assert res.json()["user"]["email"] == "alice@example.com"


async def test_list_users_ordered_by_id(client, make_user):
    alice = make_user("Alice")
    make_user("Bob")

    res = await client.get("/api/users", headers=alice["headers"])

    assert [u["name"] for u in res.json()["users"]] == ["Alice", "Bob"]


async def test_get_unknown_user_is_404(client, make_user):
    alice = make_user("Alice")

    res = await client.get("/api/users/999", headers=alice["headers"])

    assert res.status_code == 404
    assert res.json()["message"] == "User not found"


async def test_get_by_clerk_id(client, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")

    res = await client.get(f"/api/users/clerk/{bob['clerk_user_id']}", headers=alice["headers"])

    assert res.json()["user"]["user_id"] == bob["user_id"]


async def test_search_matches_email_substring(client, make_user):
    alice = make_user("Alice", "alice@acme.io")
    make_user("Bob", "bob@ACME.io")
    make_user("Carol", "carol@other.io")

    res = await client.get("/api/users/search", params={"q": "acme"}, headers=alice["headers"])

    assert sorted(u["name"] for u in res.json()["users"]) == ["Alice", "Bob"]


async def test_search_caps_results(client, make_user):
    alice = make_user("Alice", "alice@acme.io")
    for i in range(12):
        make_user(f"User {i}", f"u{i}@acme.io")

    res = await client.get("/api/users/search", params={"q": "acme"}, headers=alice["headers"])

    assert len(res.json()["users"]) == 10


async def test_empty_search_returns_nothing(client, make_user):
    alice = make_user("Alice")

    res = await client.get("/api/users/search", params={"q": "  "}, headers=alice["headers"])

    assert res.json()["users"] == []


async def test_update_own_profile(client, make_user):
    alice = make_user("Alice")

    res = await client.put(f"/api/users/{alice['user_id']}", json={"name": "Alicia"}, headers=alice["headers"])

    assert res.status_code == 200
    assert res.json()["user"]["name"] == "Alicia"


async def test_cannot_update_someone_else(client, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")

    res = await client.put(f"/api/users/{bob['user_id']}", json={"name": "Hacked"}, headers=alice["headers"])

    assert res.status_code == 403
    assert res.json()["message"] == "You can only update your own profile"


async def test_empty_update_is_400(client, make_user):
    alice = make_user("Alice")

    res = await client.put(f"/api/users/{alice['user_id']}", json={}, headers=alice["headers"])

    assert res.status_code == 400


async def test_delete_self_cascades(client, db, make_user, make_project):
    alice = make_user("Alice")
    bob = make_user("Bob")
    project = make_project(bob, members=[{"member_email": alice["email"], "user_id": alice["user_id"]}])
    task = db.insert_rows("tasks", [{"project_uuid": project["project_uuid"], "title": "T"}])[0]
    db.insert_rows("task_assignments", [{"task_id": task["task_id"], "user_id": alice["user_id"]}])

    res = await client.delete(f"/api/users/{alice['user_id']}", headers=alice["headers"])

    assert res.status_code == 200
    assert res.json() == {"success": True, "message": "User deleted successfully"}
    assert db.rows("task_assignments") == []
    assert db.rows("project_members") == []
    assert [u["user_id"] for u in db.rows("users")] == [bob["user_id"]]


async def test_cannot_delete_someone_else(client, db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")

    res = await client.delete(f"/api/users/{bob['user_id']}", headers=alice["headers"])

    assert res.status_code == 403
    assert len(db.rows("users")) == 2


async def test_manual_create_requires_known_clerk_id(client, verifier, make_user):
    alice = make_user("Alice")

    res = await client.post(
        "/api/users",
        json={"clerk_user_id": "user_unknown", "name": "X", "email": "x@example.com"},
        headers=alice["headers"],
    )

    assert res.status_code == 400
    assert res.json()["message"] == "Invalid Clerk user ID"


async def test_manual_create_and_duplicate(client, verifier, make_user):
    alice = make_user("Alice")
    verifier.profiles["user_dan"] = {"name": "Dan", "email": "dan@example.com", "avatar_url": None}
    body = {"clerk_user_id": "user_dan", "name": "Dan", "email": "Dan@Example.com"}

    created = await client.post("/api/users", json=body, headers=alice["headers"])
    duplicate = await client.post("/api/users", json=body, headers=alice["headers"])

    assert created.status_code == 201
    assert created.json()["user"]["email"] == "dan@example.com"
    assert duplicate.status_code == 409
