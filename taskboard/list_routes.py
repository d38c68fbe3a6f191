import logging

from fastapi import APIRouter, Depends, HTTPException

from taskboard.access import check_board_access, get_current_user
from taskboard.database import get_db
from taskboard.models import ListInput, ListReorder, ListUpdate, TaskList, User
from taskboard.queries import fetch_board_lists, fetch_list, new_id, next_position

logger = logging.getLogger(__name__)
list_router = APIRouter(prefix="/api/lists")


@list_router.post("", status_code=201)
async def create_list(req: ListInput, user: User = Depends(get_current_user)) -> TaskList:
    if not req.title or not req.board_id:
        raise HTTPException(status_code=400, detail="Please provide title and board")

    db = await get_db()
    try:
        await check_board_access(db, req.board_id, user.id)
        position = req.position
        if position is None:
            position = await next_position(db, "lists", "board_id", req.board_id)

        list_id = new_id()
        await db.execute(
            "INSERT INTO lists (id, title, board_id, position) VALUES (?, ?, ?, ?)",
            (list_id, req.title, req.board_id, position),
        )
        await db.commit()
        return await fetch_list(db, list_id)
    finally:
        await db.close()


@list_router.put("/reorder")
async def reorder_lists(req: ListReorder, user: User = Depends(get_current_user)) -> list[TaskList]:
    if not req.board_id or req.list_orders is None:
        raise HTTPException(status_code=400, detail="Please provide boardId and listOrders array")

    db = await get_db()
    try:
        await check_board_access(db, req.board_id, user.id)
        for order in req.list_orders:
            await db.execute(
                "UPDATE lists SET position = ?, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND board_id = ?",
                (order.position, order.list_id, req.board_id),
            )
        await db.commit()
        return await fetch_board_lists(db, req.board_id)
    finally:
        await db.close()


@list_router.get("/board/{board_id}")
async def get_board_lists(board_id: str, user: User = Depends(get_current_user)) -> list[TaskList]:
    db = await get_db()
    try:
        await check_board_access(db, board_id, user.id)
        return await fetch_board_lists(db, board_id)
    finally:
        await db.close()


async def _load_list(db, list_id: str, user: User) -> TaskList:
    task_list = await fetch_list(db, list_id)
    if not task_list:
        raise HTTPException(status_code=404, detail="List not found")
    await check_board_access(db, task_list.board_id, user.id)
    return task_list


@list_router.get("/{list_id}")
async def get_list(list_id: str, user: User = Depends(get_current_user)) -> TaskList:
    db = await get_db()
    try:
        return await _load_list(db, list_id, user)
    finally:
        await db.close()


@list_router.put("/{list_id}")
async def update_list(
    list_id: str, req: ListUpdate, user: User = Depends(get_current_user)
) -> TaskList:
    db = await get_db()
    try:
        task_list = await _load_list(db, list_id, user)
        await db.execute(
            "UPDATE lists SET title = ?, position = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
            (
                req.title if req.title is not None else task_list.title,
                req.position if req.position is not None else task_list.position,
                list_id,
            ),
        )
        await db.commit()
        return await fetch_list(db, list_id)
    finally:
        await db.close()


@list_router.delete("/{list_id}")
async def delete_list(list_id: str, user: User = Depends(get_current_user)):
    """Delete a list; its cards go with it."""
    db = await get_db()
    try:
        await _load_list(db, list_id, user)
        await db.execute("DELETE FROM lists WHERE id = ?", (list_id,))
        await db.commit()
        logger.info(f"List {list_id} deleted by {user.id}")
        return {"message": "List removed"}
    finally:
        await db.close()
