import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from taskboard.access import check_board_access, get_current_user, require_board_admin
from taskboard.config import DEFAULT_BOARD_BACKGROUND, INVITE_TTL_DAYS
from taskboard.database import get_db
from taskboard.models import Board, BoardInput, Invite, InviteInput, MemberInput, User
from taskboard.orchestrator import recommend_in_board
from taskboard.queries import (
    add_member,
    fetch_board,
    fetch_board_cards,
    fetch_board_lists,
    fetch_card,
    fetch_user,
    fetch_user_by_email,
    new_id,
    row_to_invite,
    touch_board,
)

logger = logging.getLogger(__name__)
board_router = APIRouter(prefix="/api/boards")


@board_router.post("", status_code=201)
async def create_board(req: BoardInput, user: User = Depends(get_current_user)) -> Board:
    if not req.title or not req.title.strip():
        raise HTTPException(status_code=400, detail="Please provide a board title")

    board_id = new_id()
    db = await get_db()
    try:
        await db.execute(
            "INSERT INTO boards (id, title, owner_id, background) VALUES (?, ?, ?, ?)",
            (board_id, req.title.strip(), user.id, req.background or DEFAULT_BOARD_BACKGROUND),
        )
        await add_member(db, board_id, user.id, "admin")
        await db.commit()
        logger.info(f"Board {board_id} created by {user.id}")
        return await fetch_board(db, board_id)
    finally:
        await db.close()


@board_router.get("")
async def list_boards(user: User = Depends(get_current_user)) -> list[Board]:
    """Boards the caller owns or belongs to, most recently updated first."""
    db = await get_db()
    try:
        cursor = await db.execute(
            "SELECT DISTINCT b.id, b.updated_at, b.rowid FROM boards b "
            "LEFT JOIN board_members m ON m.board_id = b.id "
            "WHERE b.owner_id = ? OR m.user_id = ? "
            "ORDER BY b.updated_at DESC, b.rowid DESC",
            (user.id, user.id),
        )
        rows = await cursor.fetchall()
        return [await fetch_board(db, r["id"]) for r in rows]
    finally:
        await db.close()


@board_router.post("/accept-invite/{token}")
async def accept_invite(token: str, user: User = Depends(get_current_user)):
    db = await get_db()
    try:
        cursor = await db.execute(
            "SELECT * FROM invites WHERE token = ? AND status = 'pending'", (token,)
        )
        row = await cursor.fetchone()
        if not row:
            raise HTTPException(status_code=404, detail="Invite not found or already used")
        invite = row_to_invite(row)

        if invite.expires_at < datetime.now(timezone.utc):
            await db.execute("UPDATE invites SET status = 'expired' WHERE id = ?", (invite.id,))
            await db.commit()
            raise HTTPException(status_code=400, detail="Invite has expired")

        if user.email.lower() != invite.email.lower():
            raise HTTPException(
                status_code=403, detail="This invite was sent to a different email address"
            )

        board = await fetch_board(db, invite.board_id)
        if not board:
            raise HTTPException(status_code=404, detail="Board not found")

        if any(m.user_id == user.id for m in board.members):
            await db.execute("UPDATE invites SET status = 'accepted' WHERE id = ?", (invite.id,))
            await db.commit()
            raise HTTPException(status_code=400, detail="You are already a member of this board")

        await add_member(db, board.id, user.id, invite.role)
        await db.execute("UPDATE invites SET status = 'accepted' WHERE id = ?", (invite.id,))
        await db.commit()
        logger.info(f"User {user.id} accepted invite to board {board.id}")

        return {
            "message": "Successfully joined the board",
            "board": await fetch_board(db, board.id),
        }
    finally:
        await db.close()


@board_router.get("/{board_id}")
async def get_board(board_id: str, user: User = Depends(get_current_user)) -> Board:
    db = await get_db()
    try:
        return await check_board_access(db, board_id, user.id)
    finally:
        await db.close()


@board_router.put("/{board_id}")
async def update_board(
    board_id: str, req: BoardInput, user: User = Depends(get_current_user)
) -> Board:
    db = await get_db()
    try:
        board = await require_board_admin(db, board_id, user.id, "update this board")
        title = req.title.strip() if req.title and req.title.strip() else board.title
        await db.execute(
            "UPDATE boards SET title = ?, background = ?, updated_at = CURRENT_TIMESTAMP "
            "WHERE id = ?",
            (title, req.background or board.background, board_id),
        )
        await db.commit()
        return await fetch_board(db, board_id)
    finally:
        await db.close()


@board_router.delete("/{board_id}")
async def delete_board(board_id: str, user: User = Depends(get_current_user)):
    db = await get_db()
    try:
        board = await fetch_board(db, board_id)
        if not board:
            raise HTTPException(status_code=404, detail="Board not found")
        if board.owner_id != user.id:
            raise HTTPException(status_code=403, detail="Not authorized to delete this board")
        await db.execute("DELETE FROM boards WHERE id = ?", (board_id,))
        await db.commit()
        logger.info(f"Board {board_id} deleted by {user.id}")
        return {"message": "Board removed"}
    finally:
        await db.close()


@board_router.post("/{board_id}/members")
async def add_board_member(
    board_id: str, req: MemberInput, user: User = Depends(get_current_user)
) -> Board:
    db = await get_db()
    try:
        board = await require_board_admin(db, board_id, user.id, "add members")
        if any(m.user_id == req.user_id for m in board.members):
            raise HTTPException(status_code=400, detail="User is already a member")
        if not await fetch_user(db, req.user_id):
            raise HTTPException(status_code=404, detail="User not found")

        await add_member(db, board_id, req.user_id, req.role)
        await db.commit()
        return await fetch_board(db, board_id)
    finally:
        await db.close()


@board_router.post("/{board_id}/invite")
async def invite_user(board_id: str, req: InviteInput, user: User = Depends(get_current_user)):
    """Add an existing user directly, or leave a pending invite for an unknown email."""
    if not req.email or not req.email.strip():
        raise HTTPException(status_code=400, detail="Please provide an email address")
    email = req.email.strip().lower()

    db = await get_db()
    try:
        board = await require_board_admin(db, board_id, user.id, "invite members")

        if email == user.email.lower():
            raise HTTPException(status_code=400, detail="You cannot invite yourself")

        invited_user = await fetch_user_by_email(db, email)
        if invited_user:
            if any(m.user_id == invited_user.id for m in board.members):
                raise HTTPException(
                    status_code=400, detail="User is already a member of this board"
                )
            await add_member(db, board_id, invited_user.id, req.role)
            await db.commit()
            return {
                "message": "User added to board successfully",
                "board": await fetch_board(db, board_id),
            }

        cursor = await db.execute(
            "SELECT * FROM invites WHERE email = ? AND board_id = ? AND status = 'pending'",
            (email, board_id),
        )
        existing = await cursor.fetchone()
        if existing:
            return JSONResponse(
                status_code=400,
                content={
                    "detail": "An invitation has already been sent to this email",
                    "invite": {
                        "email": existing["email"],
                        "token": existing["token"],
                        "expiresAt": existing["expires_at"],
                    },
                },
            )

        invite = Invite(
            id=new_id(),
            board_id=board_id,
            email=email,
            invited_by=user.id,
            token=secrets.token_hex(32),
            role=req.role,
            status="pending",
            expires_at=datetime.now(timezone.utc) + timedelta(days=INVITE_TTL_DAYS),
        )
        await db.execute(
            "INSERT INTO invites (id, board_id, email, invited_by, token, role, status, expires_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                invite.id,
                invite.board_id,
                invite.email,
                invite.invited_by,
                invite.token,
                invite.role,
                invite.status,
                invite.expires_at.isoformat(),
            ),
        )
        await touch_board(db, board_id)
        await db.commit()
        logger.info(f"Pending invite created for board {board_id}")

        return JSONResponse(
            status_code=201,
            content=jsonable_encoder(
                {
                    "message": "Invitation created successfully. User will be added when they register.",
                    "invite": invite,
                }
            ),
        )
    finally:
        await db.close()


@board_router.get("/{board_id}/invites")
async def list_invites(board_id: str, user: User = Depends(get_current_user)) -> list[Invite]:
    db = await get_db()
    try:
        await require_board_admin(db, board_id, user.id, "view invites")
        cursor = await db.execute(
            "SELECT * FROM invites WHERE board_id = ? AND status = 'pending' "
            "ORDER BY created_at DESC, rowid DESC",
            (board_id,),
        )
        return [row_to_invite(r) for r in await cursor.fetchall()]
    finally:
        await db.close()


@board_router.get("/{board_id}/cards/{card_id}/recommendations")
async def get_card_recommendations_in_board(
    board_id: str, card_id: str, user: User = Depends(get_current_user)
):
    db = await get_db()
    try:
        await check_board_access(db, board_id, user.id)

        card = await fetch_card(db, card_id)
        if not card:
            raise HTTPException(status_code=404, detail="Card not found")
        if card.board_id != board_id:
            raise HTTPException(status_code=400, detail="Card does not belong to this board")

        board_cards = await fetch_board_cards(db, board_id)
        board_lists = await fetch_board_lists(db, board_id)
    finally:
        await db.close()

    return recommend_in_board(board_id, card, board_cards, board_lists)
