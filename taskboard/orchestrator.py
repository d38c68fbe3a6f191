import logging
from typing import Any, Sequence

from taskboard.insights import InsightClient, get_card_insights
from taskboard.models import CardView, ListView
from taskboard.recommendations import analyze_card

logger = logging.getLogger(__name__)


async def recommend_for_card(
    card: CardView,
    board_cards: Sequence[CardView],
    board_lists: Sequence[ListView],
    insight_client: InsightClient | None,
) -> dict[str, Any]:
    """
    Rule-based analysis plus optional AI insights for one card.

    The rule-based part is computed first and never depends on the AI call;
    an AI failure only leaves ``aiInsights`` as null.
    """
    analysis = analyze_card(card, board_cards, board_lists)

    outcome = await get_card_insights(insight_client, card, board_cards, board_lists)
    if not outcome.ok:
        logger.warning(f"AI insights unavailable for card {card.id}: {outcome.error}")

    return {
        "cardId": card.id,
        "cardTitle": card.title,
        **analysis.to_payload(),
        "aiInsights": (
            outcome.insights.model_dump(mode="json", by_alias=True) if outcome.ok else None
        ),
    }


def recommend_in_board(
    board_id: str,
    card: CardView,
    board_cards: Sequence[CardView],
    board_lists: Sequence[ListView],
) -> dict[str, Any]:
    """Rule-based recommendations only, scoped to a board."""
    analysis = analyze_card(card, board_cards, board_lists)
    return {
        "boardId": board_id,
        "cardId": card.id,
        "cardTitle": card.title,
        "recommendations": analysis.to_payload(),
    }
