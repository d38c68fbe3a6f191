import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from taskboard.access import check_board_access, get_current_user
from taskboard.database import get_db
from taskboard.insights import InsightClient
from taskboard.models import Card, CardInput, CardMove, CardReorder, CardUpdate, User
from taskboard.orchestrator import recommend_for_card
from taskboard.queries import (
    fetch_board_cards,
    fetch_board_lists,
    fetch_card,
    fetch_list,
    fetch_list_cards,
    new_id,
    next_position,
)

logger = logging.getLogger(__name__)
card_router = APIRouter(prefix="/api/cards")


def get_insight_client(request: Request) -> InsightClient | None:
    """The AI client built at startup, if any."""
    return getattr(request.app.state, "insight_client", None)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


async def _load_card(db, card_id: str, user: User) -> Card:
    card = await fetch_card(db, card_id)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    await check_board_access(db, card.board_id, user.id)
    return card


@card_router.post("", status_code=201)
async def create_card(req: CardInput, user: User = Depends(get_current_user)) -> Card:
    if not req.title or not req.list_id or not req.board_id:
        raise HTTPException(status_code=400, detail="Please provide title, list, and board")

    db = await get_db()
    try:
        await check_board_access(db, req.board_id, user.id)

        task_list = await fetch_list(db, req.list_id)
        if not task_list or task_list.board_id != req.board_id:
            raise HTTPException(status_code=400, detail="Invalid list for this board")

        position = req.position
        if position is None:
            position = await next_position(db, "cards", "list_id", req.list_id)

        card_id = new_id()
        await db.execute(
            "INSERT INTO cards (id, title, description, list_id, board_id, position, "
            "due_date, created_by, labels) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                card_id,
                req.title,
                req.description or "",
                req.list_id,
                req.board_id,
                position,
                _iso(req.due_date),
                user.id,
                json.dumps(req.labels or []),
            ),
        )
        await db.commit()
        return await fetch_card(db, card_id)
    finally:
        await db.close()


@card_router.put("/reorder")
async def reorder_cards(req: CardReorder, user: User = Depends(get_current_user)) -> list[Card]:
    if not req.list_id or req.card_orders is None:
        raise HTTPException(status_code=400, detail="Please provide listId and cardOrders array")

    db = await get_db()
    try:
        task_list = await fetch_list(db, req.list_id)
        if not task_list:
            raise HTTPException(status_code=404, detail="List not found")
        await check_board_access(db, task_list.board_id, user.id)

        for order in req.card_orders:
            await db.execute(
                "UPDATE cards SET position = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND board_id = ?",
                (order.position, order.card_id, task_list.board_id),
            )
        await db.commit()
        return await fetch_list_cards(db, req.list_id)
    finally:
        await db.close()


@card_router.get("/list/{list_id}")
async def get_list_cards(list_id: str, user: User = Depends(get_current_user)) -> list[Card]:
    db = await get_db()
    try:
        task_list = await fetch_list(db, list_id)
        if not task_list:
            raise HTTPException(status_code=404, detail="List not found")
        await check_board_access(db, task_list.board_id, user.id)
        return await fetch_list_cards(db, list_id)
    finally:
        await db.close()


@card_router.get("/board/{board_id}")
async def get_board_cards(board_id: str, user: User = Depends(get_current_user)) -> list[Card]:
    db = await get_db()
    try:
        await check_board_access(db, board_id, user.id)
        return await fetch_board_cards(db, board_id)
    finally:
        await db.close()


@card_router.get("/{card_id}")
async def get_card(card_id: str, user: User = Depends(get_current_user)) -> Card:
    db = await get_db()
    try:
        return await _load_card(db, card_id, user)
    finally:
        await db.close()


@card_router.get("/{card_id}/recommendations")
async def get_card_recommendations(
    card_id: str,
    user: User = Depends(get_current_user),
    insight_client: InsightClient | None = Depends(get_insight_client),
):
    """Rule-based suggestions for a card, plus AI insights when available."""
    db = await get_db()
    try:
        card = await _load_card(db, card_id, user)
        board_cards = await fetch_board_cards(db, card.board_id)
        board_lists = await fetch_board_lists(db, card.board_id)
    finally:
        await db.close()

    return await recommend_for_card(card, board_cards, board_lists, insight_client)


@card_router.put("/{card_id}")
async def update_card(
    card_id: str, req: CardUpdate, user: User = Depends(get_current_user)
) -> Card:
    db = await get_db()
    try:
        card = await _load_card(db, card_id, user)
        fields = req.model_fields_set

        due_date = req.due_date if "due_date" in fields else card.due_date
        await db.execute(
            "UPDATE cards SET title = ?, description = ?, due_date = ?, labels = ?, "
            "assigned_to = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (
                req.title if req.title is not None else card.title,
                req.description if req.description is not None else card.description,
                _iso(due_date),
                json.dumps(req.labels if req.labels is not None else card.labels),
                json.dumps(req.assigned_to if req.assigned_to is not None else card.assigned_to),
                card_id,
            ),
        )
        await db.commit()
        return await fetch_card(db, card_id)
    finally:
        await db.close()


@card_router.delete("/{card_id}")
async def delete_card(card_id: str, user: User = Depends(get_current_user)):
    db = await get_db()
    try:
        await _load_card(db, card_id, user)
        await db.execute("DELETE FROM cards WHERE id = ?", (card_id,))
        await db.commit()
        return {"message": "Card removed"}
    finally:
        await db.close()


@card_router.put("/{card_id}/move")
async def move_card(card_id: str, req: CardMove, user: User = Depends(get_current_user)) -> Card:
    if not req.list_id or req.position is None:
        raise HTTPException(status_code=400, detail="Please provide listId and position")

    db = await get_db()
    try:
        card = await _load_card(db, card_id, user)

        new_list = await fetch_list(db, req.list_id)
        if not new_list or new_list.board_id != card.board_id:
            raise HTTPException(status_code=400, detail="Invalid list for this board")

        await db.execute(
            "UPDATE cards SET list_id = ?, position = ?, updated_at = CURRENT_TIMESTAMP "
            "WHERE id = ?",
            (req.list_id, req.position, card_id),
        )
        await db.commit()
        logger.info(f"Card {card_id} moved to list {req.list_id}")
        return await fetch_card(db, card_id)
    finally:
        await db.close()
