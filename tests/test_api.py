"""
Integration tests for the HTTP API against a temporary SQLite database.

Usage:
    pytest tests/test_api.py -v
"""

from datetime import datetime, timedelta, timezone

from conftest import auth, register
from taskboard import database


def create_list(client, user, board, title, **extra):
    resp = client.post(
        "/api/lists", json={"title": title, "boardId": board["id"], **extra}, headers=auth(user)
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def create_card(client, user, board, task_list, title, **extra):
    resp = client.post(
        "/api/cards",
        json={"title": title, "listId": task_list["id"], "boardId": board["id"], **extra},
        headers=auth(user),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ============================================================================
# USERS
# ============================================================================


class TestUsers:
    def test_register_and_me(self, client):
        user = register(client, "Carol", "Carol@Example.com")
        assert user["email"] == "carol@example.com"
        resp = client.get("/api/users/me", headers=auth(user))
        assert resp.json()["id"] == user["id"]

    def test_duplicate_email(self, client, alice):
        resp = client.post("/api/users", json={"name": "Other", "email": "ALICE@example.com"})
        assert resp.status_code == 400

    def test_missing_or_unknown_caller(self, client):
        assert client.get("/api/boards").status_code == 401
        assert client.get("/api/boards", headers={"X-User-Id": "nobody"}).status_code == 401


# ============================================================================
# BOARDS AND MEMBERSHIP
# ============================================================================


class TestBoards:
    def test_create_board_makes_owner_admin(self, board, alice):
        assert board["title"] == "Release"
        assert board["ownerId"] == alice["id"]
        assert board["background"] == "#0079bf"
        assert board["members"] == [
            {"userId": alice["id"], "name": "Alice", "email": "alice@example.com", "role": "admin"}
        ]

    def test_create_board_requires_title(self, client, alice):
        resp = client.post("/api/boards", json={"title": "  "}, headers=auth(alice))
        assert resp.status_code == 400

    def test_list_boards_only_shows_membership(self, client, alice, bob, board):
        assert [b["id"] for b in client.get("/api/boards", headers=auth(alice)).json()] == [board["id"]]
        assert client.get("/api/boards", headers=auth(bob)).json() == []

    def test_non_member_is_forbidden(self, client, bob, board):
        assert client.get(f"/api/boards/{board['id']}", headers=auth(bob)).status_code == 403
        assert client.get("/api/boards/missing", headers=auth(bob)).status_code == 404

    def test_update_requires_admin(self, client, alice, bob, board):
        client.post(
            f"/api/boards/{board['id']}/members",
            json={"userId": bob["id"]},
            headers=auth(alice),
        )
        resp = client.put(f"/api/boards/{board['id']}", json={"title": "X"}, headers=auth(bob))
        assert resp.status_code == 403

        resp = client.put(
            f"/api/boards/{board['id']}", json={"background": "#000000"}, headers=auth(alice)
        )
        assert resp.status_code == 200
        assert resp.json()["title"] == "Release"
        assert resp.json()["background"] == "#000000"

    def test_only_owner_deletes(self, client, alice, bob, board):
        client.post(
            f"/api/boards/{board['id']}/members",
            json={"userId": bob["id"], "role": "admin"},
            headers=auth(alice),
        )
        assert client.delete(f"/api/boards/{board['id']}", headers=auth(bob)).status_code == 403
        assert client.delete(f"/api/boards/{board['id']}", headers=auth(alice)).status_code == 200
        assert client.get(f"/api/boards/{board['id']}", headers=auth(alice)).status_code == 404

    def test_add_member_twice(self, client, alice, bob, board):
        url = f"/api/boards/{board['id']}/members"
        assert client.post(url, json={"userId": bob["id"]}, headers=auth(alice)).status_code == 200
        assert client.post(url, json={"userId": bob["id"]}, headers=auth(alice)).status_code == 400

    def test_add_unknown_member(self, client, alice, board):
        url = f"/api/boards/{board['id']}/members"
        assert client.post(url, json={"userId": "ghost"}, headers=auth(alice)).status_code == 404


class TestInvites:
    def test_existing_user_added_directly(self, client, alice, bob, board):
        resp = client.post(
            f"/api/boards/{board['id']}/invite",
            json={"email": "BOB@example.com"},
            headers=auth(alice),
        )
        assert resp.status_code == 200
        assert resp.json()["message"] == "User added to board successfully"
        assert client.get(f"/api/boards/{board['id']}", headers=auth(bob)).status_code == 200

    def test_cannot_invite_self(self, client, alice, board):
        resp = client.post(
            f"/api/boards/{board['id']}/invite",
            json={"email": "alice@example.com"},
            headers=auth(alice),
        )
        assert resp.status_code == 400

    def test_pending_invite_redeemed_on_registration(self, client, alice, board):
        url = f"/api/boards/{board['id']}/invite"
        resp = client.post(url, json={"email": "dave@example.com", "role": "admin"}, headers=auth(alice))
        assert resp.status_code == 201
        invite = resp.json()["invite"]
        assert len(invite["token"]) == 64

        again = client.post(url, json={"email": "dave@example.com"}, headers=auth(alice))
        assert again.status_code == 400
        assert again.json()["invite"]["token"] == invite["token"]

        pending = client.get(f"/api/boards/{board['id']}/invites", headers=auth(alice)).json()
        assert [i["email"] for i in pending] == ["dave@example.com"]

        dave = register(client, "Dave", "dave@example.com")
        members = client.get(f"/api/boards/{board['id']}", headers=auth(dave)).json()["members"]
        assert {"userId": dave["id"], "name": "Dave", "email": "dave@example.com", "role": "admin"} in members
        assert client.get(f"/api/boards/{board['id']}/invites", headers=auth(alice)).json() == []

    def test_accept_invite(self, client, alice, board):
        resp = client.post(
            f"/api/boards/{board['id']}/invite",
            json={"email": "erin@example.com"},
            headers=auth(alice),
        )
        token = resp.json()["invite"]["token"]

        # Registered under a different address, then accepts with the right one.
        frank = register(client, "Frank", "frank@example.com")
        assert client.post(f"/api/boards/accept-invite/{token}", headers=auth(frank)).status_code == 403

        erin = _register_without_redeeming(client, "Erin", "erin@example.com")
        resp = client.post(f"/api/boards/accept-invite/{token}", headers=auth(erin))
        assert resp.status_code == 200
        assert resp.json()["message"] == "Successfully joined the board"
        assert client.post(f"/api/boards/accept-invite/{token}", headers=auth(erin)).status_code == 404

    def test_expired_invite(self, client, alice, board):
        resp = client.post(
            f"/api/boards/{board['id']}/invite",
            json={"email": "gina@example.com"},
            headers=auth(alice),
        )
        token = resp.json()["invite"]["token"]
        gina = _register_without_redeeming(client, "Gina", "gina@example.com")
        _run_sql(
            client,
            "UPDATE invites SET expires_at = ? WHERE token = ?",
            ((datetime.now(timezone.utc) - timedelta(days=1)).isoformat(), token),
        )

        resp = client.post(f"/api/boards/accept-invite/{token}", headers=auth(gina))
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invite has expired"
        assert client.post(f"/api/boards/accept-invite/{token}", headers=auth(gina)).status_code == 404

    def test_invites_visible_to_admins_only(self, client, alice, bob, board):
        client.post(
            f"/api/boards/{board['id']}/members", json={"userId": bob["id"]}, headers=auth(alice)
        )
        assert client.get(f"/api/boards/{board['id']}/invites", headers=auth(bob)).status_code == 403


def _run_sql(client, sql, params):
    async def run():
        db = await database.get_db()
        try:
            await db.execute(sql, params)
            await db.commit()
        finally:
            await db.close()

    client.portal.call(run)


def _register_without_redeeming(client, name, email):
    """Insert a user row directly so pending invites stay pending."""
    user_id = f"user-{name.lower()}"
    _run_sql(client, "INSERT INTO users (id, name, email) VALUES (?, ?, ?)", (user_id, name, email))
    return {"id": user_id, "name": name, "email": email}


# ============================================================================
# LISTS AND CARDS
# ============================================================================


class TestLists:
    def test_positions_default_to_end(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        doing = create_list(client, alice, board, "Doing")
        assert (backlog["position"], doing["position"]) == (0, 1)

    def test_reorder(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        done = create_list(client, alice, board, "Done")
        resp = client.put(
            "/api/lists/reorder",
            json={
                "boardId": board["id"],
                "listOrders": [
                    {"listId": backlog["id"], "position": 1},
                    {"listId": done["id"], "position": 0},
                ],
            },
            headers=auth(alice),
        )
        assert [l["title"] for l in resp.json()] == ["Done", "Backlog"]

    def test_update_and_delete_cascades_cards(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        card = create_card(client, alice, board, backlog, "Write docs")

        resp = client.put(f"/api/lists/{backlog['id']}", json={"title": "Icebox"}, headers=auth(alice))
        assert resp.json()["title"] == "Icebox"

        assert client.delete(f"/api/lists/{backlog['id']}", headers=auth(alice)).status_code == 200
        assert client.get(f"/api/cards/{card['id']}", headers=auth(alice)).status_code == 404

    def test_requires_title_and_board(self, client, alice, board):
        resp = client.post("/api/lists", json={"boardId": board["id"]}, headers=auth(alice))
        assert resp.status_code == 400


class TestCards:
    def test_create_and_fetch(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        card = create_card(
            client, alice, board, backlog, "Write docs", labels=["docs"], dueDate="2026-11-01T12:00:00"
        )
        assert card["description"] == ""
        assert card["labels"] == ["docs"]
        assert card["dueDate"] == "2026-11-01T12:00:00"
        assert card["createdBy"] == alice["id"]

        listed = client.get(f"/api/cards/list/{backlog['id']}", headers=auth(alice)).json()
        assert [c["id"] for c in listed] == [card["id"]]

    def test_list_must_belong_to_board(self, client, alice, board):
        other_board = client.post("/api/boards", json={"title": "Other"}, headers=auth(alice)).json()
        foreign = create_list(client, alice, other_board, "Backlog")
        resp = client.post(
            "/api/cards",
            json={"title": "Nope", "listId": foreign["id"], "boardId": board["id"]},
            headers=auth(alice),
        )
        assert resp.status_code == 400

    def test_update_fields(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        card = create_card(client, alice, board, backlog, "Write docs", dueDate="2026-11-01T12:00:00")
        resp = client.put(
            f"/api/cards/{card['id']}",
            json={"description": "API reference", "assignedTo": [alice["id"]], "dueDate": None},
            headers=auth(alice),
        )
        updated = resp.json()
        assert updated["title"] == "Write docs"
        assert updated["description"] == "API reference"
        assert updated["assignedTo"] == [alice["id"]]
        assert updated["dueDate"] is None

    def test_move_and_reorder(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        doing = create_list(client, alice, board, "Doing")
        first = create_card(client, alice, board, backlog, "First")
        second = create_card(client, alice, board, backlog, "Second")

        resp = client.put(
            f"/api/cards/{first['id']}/move",
            json={"listId": doing["id"], "position": 0},
            headers=auth(alice),
        )
        assert resp.json()["listId"] == doing["id"]

        bad = client.put(f"/api/cards/{first['id']}/move", json={"position": 0}, headers=auth(alice))
        assert bad.status_code == 400

        third = create_card(client, alice, board, backlog, "Third")
        resp = client.put(
            "/api/cards/reorder",
            json={
                "listId": backlog["id"],
                "cardOrders": [
                    {"cardId": third["id"], "position": 0},
                    {"cardId": second["id"], "position": 1},
                ],
            },
            headers=auth(alice),
        )
        assert [c["title"] for c in resp.json()] == ["Third", "Second"]

    def test_delete(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        card = create_card(client, alice, board, backlog, "Temp")
        assert client.delete(f"/api/cards/{card['id']}", headers=auth(alice)).status_code == 200
        assert client.get(f"/api/cards/board/{board['id']}", headers=auth(alice)).json() == []

    def test_outsider_cannot_read_cards(self, client, alice, bob, board):
        backlog = create_list(client, alice, board, "Backlog")
        card = create_card(client, alice, board, backlog, "Secret")
        assert client.get(f"/api/cards/{card['id']}", headers=auth(bob)).status_code == 403


# ============================================================================
# RECOMMENDATIONS
# ============================================================================


class TestRecommendations:
    def _deploy_board(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        create_list(client, alice, board, "Testing")
        create_list(client, alice, board, "Done")
        card = create_card(
            client, alice, board, backlog, "Deploy to prod tomorrow", description="testing needed"
        )
        related = create_card(client, alice, board, backlog, "Deploy staging", description="prod mirror")
        return card, related

    def test_card_recommendations(self, client, alice, board, insight_client):
        card, related = self._deploy_board(client, alice, board)
        resp = client.get(f"/api/cards/{card['id']}/recommendations", headers=auth(alice))
        assert resp.status_code == 200
        body = resp.json()

        assert body["cardId"] == card["id"]
        [due] = body["suggestedDueDates"]
        assert (due["source"], due["confidence"]) == ("title", "high")
        tomorrow = (datetime.now() + timedelta(days=1)).date().isoformat()
        assert due["date"].startswith(tomorrow)
        assert body["suggestedListMovement"]["listTitle"] == "Testing"
        assert body["suggestedListMovement"]["reason"] == "Keywords suggest task needs testing/review"
        assert [r["card"]["id"] for r in body["relatedCards"]] == [related["id"]]
        assert "smartTips" not in body
        assert body["aiInsights"]["aiPowered"] is True
        assert body["aiInsights"]["insights"]["priority"] == "high"
        assert "Deploy to prod tomorrow" in insight_client.prompts[0]

    def test_ai_failure_returns_rule_based_result(self, client, alice, board, insight_client):
        insight_client.error = TimeoutError("gemini timed out")
        card, _ = self._deploy_board(client, alice, board)
        resp = client.get(f"/api/cards/{card['id']}/recommendations", headers=auth(alice))
        assert resp.status_code == 200
        assert resp.json()["aiInsights"] is None
        assert resp.json()["suggestedListMovement"]["listTitle"] == "Testing"

    def test_smart_tips_for_plain_card(self, client, alice, board):
        backlog = create_list(client, alice, board, "Backlog")
        card = create_card(client, alice, board, backlog, "Refactor parser module")
        body = client.get(f"/api/cards/{card['id']}/recommendations", headers=auth(alice)).json()
        assert body["suggestedDueDates"] == []
        assert body["suggestedListMovement"] is None
        assert body["relatedCards"] == []
        assert len(body["smartTips"]) == 3

    def test_board_scoped_recommendations(self, client, alice, board):
        card, _ = self._deploy_board(client, alice, board)
        resp = client.get(
            f"/api/boards/{board['id']}/cards/{card['id']}/recommendations", headers=auth(alice)
        )
        body = resp.json()
        assert body["boardId"] == board["id"]
        assert body["recommendations"]["suggestedListMovement"]["listTitle"] == "Testing"
        assert "aiInsights" not in body

    def test_board_scoped_rejects_foreign_card(self, client, alice, board):
        card, _ = self._deploy_board(client, alice, board)
        other = client.post("/api/boards", json={"title": "Other"}, headers=auth(alice)).json()
        resp = client.get(
            f"/api/boards/{other['id']}/cards/{card['id']}/recommendations", headers=auth(alice)
        )
        assert resp.status_code == 400
