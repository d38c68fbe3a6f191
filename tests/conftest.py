from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from taskboard import database
from taskboard.card_routes import get_insight_client
from taskboard.main import app
from taskboard.models import CardView, ListView


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================


def make_card(
    card_id: str = "card-1",
    title: Optional[str] = "Untitled",
    description: Optional[str] = "",
    list_id: str = "list-backlog",
    board_id: str = "board-1",
    due_date: Optional[datetime] = None,
) -> CardView:
    return CardView(
        id=card_id,
        title=title,
        description=description,
        list_id=list_id,
        board_id=board_id,
        due_date=due_date,
    )


def make_lists(*titles: str, board_id: str = "board-1") -> List[ListView]:
    """One list per title, ids derived from the title (``Backlog`` -> ``list-backlog``)."""
    return [
        ListView(id=f"list-{title.lower().replace(' ', '-')}", title=title, board_id=board_id)
        for title in titles
    ]


class FakeInsightClient:
    """Stands in for the Gemini client: returns a canned reply or raises."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None, configured: bool = True):
        self.reply = reply
        self.error = error
        self.is_configured = configured
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def insight_client() -> FakeInsightClient:
    return FakeInsightClient(
        reply=(
            'Sure! {"dueDateSuggestion": {"hasDate": true, "suggestedDate": "2026-10-20", '
            '"reason": "Deploy is tomorrow"}, "listMovement": {"shouldMove": false, '
            '"suggestedList": null, "reason": "Fine where it is"}, "insights": '
            '{"priority": "high", "estimatedEffort": "2 hours", "actionableSteps": ["Run tests"], '
            '"potentialBlockers": []}}'
        )
    )


@pytest.fixture
def client(tmp_path, monkeypatch, insight_client):
    monkeypatch.setattr(database, "DB_PATH", str(tmp_path / "taskboard.db"))
    app.dependency_overrides[get_insight_client] = lambda: insight_client
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register(client: TestClient, name: str, email: str) -> Dict[str, Any]:
    resp = client.post("/api/users", json={"name": name, "email": email})
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth(user: Dict[str, Any]) -> Dict[str, str]:
    return {"X-User-Id": user["id"]}


@pytest.fixture
def alice(client) -> Dict[str, Any]:
    return register(client, "Alice", "alice@example.com")


@pytest.fixture
def bob(client) -> Dict[str, Any]:
    return register(client, "Bob", "bob@example.com")


@pytest.fixture
def board(client, alice) -> Dict[str, Any]:
    resp = client.post("/api/boards", json={"title": "Release"}, headers=auth(alice))
    assert resp.status_code == 201, resp.text
    return resp.json()
