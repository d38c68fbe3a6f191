"""Caller identity and board membership checks shared by the routers."""
import aiosqlite
from fastapi import Header, HTTPException

from taskboard.database import get_db
from taskboard.models import Board, User
from taskboard.queries import fetch_board, fetch_user


async def get_current_user(x_user_id: str | None = Header(None)) -> User:
    """Resolve the ``X-User-Id`` header to a registered user."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    db = await get_db()
    try:
        user = await fetch_user(db, x_user_id)
    finally:
        await db.close()
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def is_member(board: Board, user_id: str) -> bool:
    return board.owner_id == user_id or any(m.user_id == user_id for m in board.members)


def is_admin(board: Board, user_id: str) -> bool:
    if board.owner_id == user_id:
        return True
    return any(m.user_id == user_id and m.role == "admin" for m in board.members)


async def check_board_access(db: aiosqlite.Connection, board_id: str, user_id: str) -> Board:
    board = await fetch_board(db, board_id)
    if not board:
        raise HTTPException(status_code=404, detail="Board not found")
    if not is_member(board, user_id):
        raise HTTPException(status_code=403, detail="Not authorized to access this board")
    return board


async def require_board_admin(
    db: aiosqlite.Connection, board_id: str, user_id: str, action: str
) -> Board:
    board = await fetch_board(db, board_id)
    if not board:
        raise HTTPException(status_code=404, detail="Board not found")
    if not is_admin(board, user_id):
        raise HTTPException(status_code=403, detail=f"Not authorized to {action}")
    return board
