from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["admin", "member"]


class CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class UserInput(CamelModel):
    name: str
    email: str


class BoardInput(CamelModel):
    title: str | None = None
    background: str | None = None


class MemberInput(CamelModel):
    user_id: str
    role: Role = "member"


class InviteInput(CamelModel):
    email: str | None = None
    role: Role = "member"


class ListInput(CamelModel):
    title: str | None = None
    board_id: str | None = None
    position: int | None = None


class ListUpdate(CamelModel):
    title: str | None = None
    position: int | None = None


class ListOrder(CamelModel):
    list_id: str
    position: int


class ListReorder(CamelModel):
    board_id: str | None = None
    list_orders: list[ListOrder] | None = None


class CardInput(CamelModel):
    title: str | None = None
    description: str | None = None
    list_id: str | None = None
    board_id: str | None = None
    due_date: datetime | None = None
    labels: list[str] | None = None
    position: int | None = None


class CardUpdate(CamelModel):
    title: str | None = None
    description: str | None = None
    due_date: datetime | None = None
    labels: list[str] | None = None
    assigned_to: list[str] | None = None


class CardMove(CamelModel):
    list_id: str | None = None
    position: int | None = None


class CardOrder(CamelModel):
    card_id: str
    position: int


class CardReorder(CamelModel):
    list_id: str | None = None
    card_orders: list[CardOrder] | None = None


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class User(CamelModel):
    id: str
    name: str
    email: str


class BoardMember(CamelModel):
    user_id: str
    name: str
    email: str
    role: Role


class Board(CamelModel):
    id: str
    title: str
    owner_id: str
    background: str
    members: list[BoardMember] = []
    created_at: str | None = None
    updated_at: str | None = None


class ListView(CamelModel):
    """The part of a list the card analysis reads."""

    id: str
    title: str = ""
    board_id: str | None = None


class TaskList(ListView):
    title: str
    position: int = 0
    created_at: str | None = None
    updated_at: str | None = None


class CardView(CamelModel):
    """The part of a card the card analysis reads."""

    id: str
    title: str | None = None
    description: str | None = ""
    list_id: str | None = None
    board_id: str | None = None
    due_date: datetime | None = None


class Card(CardView):
    title: str
    position: int = 0
    created_by: str | None = None
    labels: list[str] = []
    assigned_to: list[str] = []
    created_at: str | None = None
    updated_at: str | None = None


class Invite(CamelModel):
    id: str
    board_id: str
    email: str
    invited_by: str
    token: str
    role: Role
    status: Literal["pending", "accepted", "expired"]
    expires_at: datetime
    created_at: str | None = None


# ---------------------------------------------------------------------------
# Card analysis
# ---------------------------------------------------------------------------


class DateSuggestion(CamelModel):
    date: datetime
    source: Literal["title", "description"]
    confidence: Literal["high", "medium"]
    reason: str


class ListSuggestion(CamelModel):
    list_id: str
    list_title: str
    reason: str


class CardSummary(CamelModel):
    id: str
    title: str | None = None
    list_id: str | None = Field(default=None, alias="list")
    due_date: datetime | None = None


class RelatedCard(CamelModel):
    card: CardSummary
    similarity: float = Field(ge=0, le=1)


class SmartTip(CamelModel):
    icon: str
    tip: str


class AnalysisResult(CamelModel):
    suggested_due_dates: list[DateSuggestion] = []
    suggested_list_movement: ListSuggestion | None = None
    related_cards: list[RelatedCard] = []
    smart_tips: list[SmartTip] | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict; ``smartTips`` only appears when tips were attached."""
        payload = self.model_dump(mode="json", by_alias=True)
        if self.smart_tips is None:
            payload.pop("smartTips")
        return payload


class DueDateInsight(CamelModel):
    has_date: bool = False
    suggested_date: str | None = None
    reason: str | None = None


class ListMovementInsight(CamelModel):
    should_move: bool = False
    suggested_list: str | None = None
    reason: str | None = None


class CardInsights(CamelModel):
    priority: str | None = None  # high / medium / low
    estimated_effort: str | None = None
    actionable_steps: list[str] = []
    potential_blockers: list[str] = []


class AIInsights(CamelModel):
    ai_powered: bool = True
    due_date_suggestion: DueDateInsight | None = None
    list_movement: ListMovementInsight | None = None
    insights: CardInsights | None = None
