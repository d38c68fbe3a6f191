import json
import uuid

import aiosqlite

from taskboard.models import Board, BoardMember, Card, Invite, TaskList, User


def new_id() -> str:
    return uuid.uuid4().hex


def row_to_user(r: aiosqlite.Row) -> User:
    return User(id=r["id"], name=r["name"], email=r["email"])


def row_to_list(r: aiosqlite.Row) -> TaskList:
    return TaskList(
        id=r["id"],
        title=r["title"],
        board_id=r["board_id"],
        position=r["position"],
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


def row_to_card(r: aiosqlite.Row) -> Card:
    return Card(
        id=r["id"],
        title=r["title"],
        description=r["description"],
        list_id=r["list_id"],
        board_id=r["board_id"],
        position=r["position"],
        due_date=r["due_date"],
        created_by=r["created_by"],
        labels=json.loads(r["labels"]) if r["labels"] else [],
        assigned_to=json.loads(r["assigned_to"]) if r["assigned_to"] else [],
        created_at=r["created_at"],
        updated_at=r["updated_at"],
    )


def row_to_invite(r: aiosqlite.Row) -> Invite:
    return Invite(
        id=r["id"],
        board_id=r["board_id"],
        email=r["email"],
        invited_by=r["invited_by"],
        token=r["token"],
        role=r["role"],
        status=r["status"],
        expires_at=r["expires_at"],
        created_at=r["created_at"],
    )


async def fetch_user(db: aiosqlite.Connection, user_id: str) -> User | None:
    cursor = await db.execute("SELECT * FROM users WHERE id = ?", (user_id,))
    row = await cursor.fetchone()
    return row_to_user(row) if row else None


async def fetch_user_by_email(db: aiosqlite.Connection, email: str) -> User | None:
    cursor = await db.execute("SELECT * FROM users WHERE email = ?", (email.lower(),))
    row = await cursor.fetchone()
    return row_to_user(row) if row else None


async def fetch_board(db: aiosqlite.Connection, board_id: str) -> Board | None:
    cursor = await db.execute("SELECT * FROM boards WHERE id = ?", (board_id,))
    row = await cursor.fetchone()
    if not row:
        return None
    cursor = await db.execute(
        "SELECT m.user_id, m.role, u.name, u.email "
        "FROM board_members m JOIN users u ON u.id = m.user_id "
        "WHERE m.board_id = ? ORDER BY m.rowid",
        (board_id,),
    )
    members = [
        BoardMember(user_id=m["user_id"], name=m["name"], email=m["email"], role=m["role"])
        for m in await cursor.fetchall()
    ]
    return Board(
        id=row["id"],
        title=row["title"],
        owner_id=row["owner_id"],
        background=row["background"],
        members=members,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def add_member(db: aiosqlite.Connection, board_id: str, user_id: str, role: str):
    await db.execute(
        "INSERT INTO board_members (board_id, user_id, role) VALUES (?, ?, ?)",
        (board_id, user_id, role),
    )
    await touch_board(db, board_id)


async def touch_board(db: aiosqlite.Connection, board_id: str):
    await db.execute(
        "UPDATE boards SET updated_at = CURRENT_TIMESTAMP WHERE id = ?", (board_id,)
    )


async def fetch_list(db: aiosqlite.Connection, list_id: str) -> TaskList | None:
    cursor = await db.execute("SELECT * FROM lists WHERE id = ?", (list_id,))
    row = await cursor.fetchone()
    return row_to_list(row) if row else None


async def fetch_board_lists(db: aiosqlite.Connection, board_id: str) -> list[TaskList]:
    cursor = await db.execute(
        "SELECT * FROM lists WHERE board_id = ? ORDER BY position, rowid", (board_id,)
    )
    return [row_to_list(r) for r in await cursor.fetchall()]


async def fetch_card(db: aiosqlite.Connection, card_id: str) -> Card | None:
    cursor = await db.execute("SELECT * FROM cards WHERE id = ?", (card_id,))
    row = await cursor.fetchone()
    return row_to_card(row) if row else None


async def fetch_list_cards(db: aiosqlite.Connection, list_id: str) -> list[Card]:
    cursor = await db.execute(
        "SELECT * FROM cards WHERE list_id = ? ORDER BY position, rowid", (list_id,)
    )
    return [row_to_card(r) for r in await cursor.fetchall()]


async def fetch_board_cards(db: aiosqlite.Connection, board_id: str) -> list[Card]:
    cursor = await db.execute(
        "SELECT * FROM cards WHERE board_id = ? ORDER BY position, rowid", (board_id,)
    )
    return [row_to_card(r) for r in await cursor.fetchall()]


async def next_position(db: aiosqlite.Connection, table: str, column: str, value: str) -> int:
    """Position after the last row whose ``column`` equals ``value``."""
    cursor = await db.execute(
        f"SELECT MAX(position) AS last_position FROM {table} WHERE {column} = ?", (value,)
    )
    row = await cursor.fetchone()
    return 0 if row["last_position"] is None else row["last_position"] + 1
