import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from taskboard.access import get_current_user
from taskboard.database import get_db
from taskboard.models import User, UserInput
from taskboard.queries import add_member, fetch_board, fetch_user_by_email, new_id

logger = logging.getLogger(__name__)
user_router = APIRouter(prefix="/api/users")


@user_router.post("", status_code=201)
async def register_user(req: UserInput) -> User:
    """Create a user and join any boards their email was invited to."""
    email = req.email.strip().lower()
    if not req.name.strip() or not email:
        raise HTTPException(status_code=400, detail="Please provide a name and email")

    db = await get_db()
    try:
        if await fetch_user_by_email(db, email):
            raise HTTPException(status_code=400, detail="A user with this email already exists")

        user = User(id=new_id(), name=req.name.strip(), email=email)
        await db.execute(
            "INSERT INTO users (id, name, email) VALUES (?, ?, ?)",
            (user.id, user.name, user.email),
        )

        cursor = await db.execute(
            "SELECT * FROM invites WHERE email = ? AND status = 'pending'", (email,)
        )
        now = datetime.now(timezone.utc)
        for invite in await cursor.fetchall():
            if datetime.fromisoformat(invite["expires_at"]) < now:
                status = "expired"
            else:
                board = await fetch_board(db, invite["board_id"])
                if board and all(m.user_id != user.id for m in board.members):
                    await add_member(db, board.id, user.id, invite["role"])
                    logger.info(f"User {user.id} joined board {board.id} from invite")
                status = "accepted"
            await db.execute(
                "UPDATE invites SET status = ? WHERE id = ?", (status, invite["id"])
            )

        await db.commit()
        return user
    finally:
        await db.close()


@user_router.get("/me")
async def get_me(user: User = Depends(get_current_user)) -> User:
    return user
