"""
SQLite persistence for users and posts.

Handlers receive UserRepository / PostRepository instances through FastAPI
dependencies. Each request gets its own Database, which opens the connection
on first use (so storage failures surface inside repository calls) and is
closed after the response.
"""
import re
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Union

from fastapi import Depends, Request

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    hashed_password TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    text TEXT NOT NULL,
    author_id INTEGER NOT NULL REFERENCES users(id),
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS ix_posts_author_id ON posts (author_id);
CREATE INDEX IF NOT EXISTS ix_posts_created_at ON posts (created_at);
"""
SQLITE_INT_MAX = 2 ** 63 - 1
_ID_PATTERN = re.compile(r"[0-9]+")

_POST_SELECT = """
    SELECT p.id, p.text, p.created_at, u.id AS author_id, u.username AS author_username
    FROM posts p
    JOIN users u ON u.id = p.author_id
"""
# Newest first; equal timestamps fall back to insertion order.
_NEWEST_FIRST = " ORDER BY p.created_at DESC, p.id DESC"


class DuplicateEmailError(Exception):
    """Raised when the unique email constraint rejects an insert."""


def _now_utc() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _parse_id(value: Union[int, str, None]) -> Optional[int]:
    """Path ids that are not integers simply do not resolve."""
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and _ID_PATTERN.fullmatch(value):
        parsed = int(value)
    else:
        return None
    return parsed if 0 < parsed <= SQLITE_INT_MAX else None


def connect(path: str) -> sqlite3.Connection:
    """
    Returns a SQLite connection to ``path``.
    Ensures foreign keys are enabled.
    """
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        conn.execute("PRAGMA foreign_keys = ON")
    except sqlite3.Error:
        conn.close()
        raise
    return conn


class Database:
    """A lazily opened connection to the SQLite file at ``path``."""

    def __init__(self, path: str):
        self.path = path
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = connect(self.path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


# PUBLIC_INTERFACE
def init_db(path: str) -> None:
    """Create the users and posts tables if they do not exist."""
    conn = connect(path)
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


class UserRepository:
    def __init__(self, db: Database):
        self.db = db

    def get_by_id(self, user_id: Union[int, str, None]) -> Optional[Dict[str, Any]]:
        uid = _parse_id(user_id)
        if uid is None:
            return None
        row = self.db.conn.execute(
            "SELECT id, username, email, hashed_password, created_at FROM users WHERE id = ?", (uid,)
        ).fetchone()
        return dict(row) if row else None

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        row = self.db.conn.execute(
            "SELECT id, username, email, hashed_password, created_at FROM users WHERE email = ?", (email,)
        ).fetchone()
        return dict(row) if row else None

    def create(self, username: str, email: str, hashed_password: str) -> Dict[str, Any]:
        try:
            cur = self.db.conn.execute(
                "INSERT INTO users (username, email, hashed_password, created_at) VALUES (?, ?, ?, ?)",
                (username, email, hashed_password, _now_utc()),
            )
            self.db.conn.commit()
        except sqlite3.IntegrityError as e:
            self.db.conn.rollback()
            raise DuplicateEmailError(email) from e
        return self.get_by_id(cur.lastrowid)


class PostRepository:
    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _populate(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "text": row["text"],
            "author": {"id": row["author_id"], "username": row["author_username"]},
            "created_at": row["created_at"],
        }

    def list_all(self) -> List[Dict[str, Any]]:
        rows = self.db.conn.execute(_POST_SELECT + _NEWEST_FIRST).fetchall()
        return [self._populate(r) for r in rows]

    def list_by_author(self, author_id: int) -> List[Dict[str, Any]]:
        rows = self.db.conn.execute(_POST_SELECT + " WHERE p.author_id = ?" + _NEWEST_FIRST, (author_id,)).fetchall()
        return [self._populate(r) for r in rows]

    def get_by_id(self, post_id: Union[int, str, None]) -> Optional[Dict[str, Any]]:
        pid = _parse_id(post_id)
        if pid is None:
            return None
        row = self.db.conn.execute(_POST_SELECT + " WHERE p.id = ?", (pid,)).fetchone()
        return self._populate(row) if row else None

    def create(self, text: str, author_id: int) -> Dict[str, Any]:
        cur = self.db.conn.execute(
            "INSERT INTO posts (text, author_id, created_at) VALUES (?, ?, ?)",
            (text, author_id, _now_utc()),
        )
        self.db.conn.commit()
        return self.get_by_id(cur.lastrowid)


# Dependencies
def get_db(request: Request) -> Iterator[Database]:
    db = Database(request.app.state.settings.sqlite_db)
    try:
        yield db
    finally:
        db.close()


def get_user_repository(db: Database = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_post_repository(db: Database = Depends(get_db)) -> PostRepository:
    return PostRepository(db)
