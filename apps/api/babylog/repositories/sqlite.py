"""SQLite helpers and the persistent repository backend."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from ..clock import Clock, from_iso, new_id, to_iso, utc_now
from ..errors import NotFound, ValidationFailure
from ..passwords import DEFAULT_ROUNDS, hash_password, verify_password
from ..schemas import Baby, Event, EventPage, EventType, User
from .base import (
    UNSET,
    AuthRepository,
    BabyRepository,
    EventRepository,
    EventTypeRepository,
    Repositories,
)
from .cursor import decode_cursor, encode_cursor, resolve_limit
from .memory import normalize_email


class SqliteDatabase:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def initialize(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    email TEXT PRIMARY KEY,
                    password_hash TEXT NOT NULL,
                    display_name TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS babies (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS baby_parents (
                    baby_id TEXT NOT NULL,
                    user_email TEXT NOT NULL,
                    PRIMARY KEY (baby_id, user_email),
                    FOREIGN KEY (baby_id) REFERENCES babies(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS event_types (
                    id TEXT PRIMARY KEY,
                    baby_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1,
                    sort_order REAL NOT NULL,
                    created_by TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (baby_id) REFERENCES babies(id) ON DELETE CASCADE
                );

                CREATE TABLE IF NOT EXISTS events (
                    id TEXT PRIMARY KEY,
                    baby_id TEXT NOT NULL,
                    type_id TEXT NOT NULL,
                    note TEXT,
                    happened_at TEXT NOT NULL,
                    created_by TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (baby_id) REFERENCES babies(id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_events_baby_timeline
                    ON events (baby_id, happened_at DESC, id DESC);
                """
            )
            conn.commit()


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        email=row["email"],
        display_name=row["display_name"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _row_to_event_type(row: sqlite3.Row) -> EventType:
    return EventType(
        id=row["id"],
        baby_id=row["baby_id"],
        name=row["name"],
        active=bool(row["active"]),
        order=row["sort_order"],
        created_by=row["created_by"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


def _row_to_event(row: sqlite3.Row) -> Event:
    return Event(
        id=row["id"],
        baby_id=row["baby_id"],
        type_id=row["type_id"],
        note=row["note"],
        happened_at=from_iso(row["happened_at"]),
        created_by=row["created_by"],
        created_at=from_iso(row["created_at"]),
        updated_at=from_iso(row["updated_at"]),
    )


class SqliteAuthRepository(AuthRepository):
    def __init__(self, db: SqliteDatabase, *, clock: Clock = utc_now, rounds: int = DEFAULT_ROUNDS) -> None:
        self._db = db
        self._clock = clock
        self._rounds = rounds
        self._dummy_hash: Optional[str] = None

    def get(self, email: str) -> Optional[User]:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT email, display_name, created_at, updated_at FROM users WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        return _row_to_user(row) if row else None

    def create(self, email: str, password: str, display_name: Optional[str] = None) -> User:
        key = normalize_email(email)
        if not key:
            raise ValidationFailure("email is required")
        now = to_iso(self._clock())
        password_hash = hash_password(password, rounds=self._rounds)
        try:
            with self._db.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO users (email, password_hash, display_name, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (key, password_hash, display_name, now, now),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise ValidationFailure(f"user {key} already exists") from exc
        return User(email=key, display_name=display_name, created_at=from_iso(now), updated_at=from_iso(now))

    def verify_password(self, email: str, password: str) -> bool:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT password_hash FROM users WHERE email = ?",
                (normalize_email(email),),
            ).fetchone()
        if row is None:
            if self._dummy_hash is None:
                self._dummy_hash = hash_password(new_id(), rounds=self._rounds)
            verify_password(password, self._dummy_hash)
            return False
        return verify_password(password, row["password_hash"])

    def set_password(self, email: str, password: str) -> None:
        key = normalize_email(email)
        password_hash = hash_password(password, rounds=self._rounds)
        with self._db.connection() as conn:
            cursor = conn.execute(
                "UPDATE users SET password_hash = ?, updated_at = ? WHERE email = ?",
                (password_hash, to_iso(self._clock()), key),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise NotFound(f"User {key} not found")


class SqliteBabyRepository(BabyRepository):
    def __init__(self, db: SqliteDatabase, *, clock: Clock = utc_now) -> None:
        self._db = db
        self._clock = clock

    def _load(self, conn: sqlite3.Connection, baby_id: str) -> Optional[Baby]:
        row = conn.execute("SELECT * FROM babies WHERE id = ?", (baby_id,)).fetchone()
        if row is None:
            return None
        parents = [
            parent["user_email"]
            for parent in conn.execute(
                "SELECT user_email FROM baby_parents WHERE baby_id = ?",
                (baby_id,),
            ).fetchall()
        ]
        return Baby(
            id=row["id"],
            name=row["name"],
            parent_ids=parents,
            created_at=from_iso(row["created_at"]),
        )

    def for_identity(self, email: str) -> Optional[Baby]:
        with self._db.connection() as conn:
            row = conn.execute(
                "SELECT baby_id FROM baby_parents WHERE user_email = ? ORDER BY baby_id LIMIT 1",
                (normalize_email(email),),
            ).fetchone()
            if row is None:
                return None
            return self._load(conn, row["baby_id"])

    def create(self, baby_id: str, name: str, parent_ids: Iterable[str]) -> Baby:
        parents = sorted({normalize_email(email) for email in parent_ids})
        if not parents:
            raise ValidationFailure("a baby needs at least one parent")
        now = to_iso(self._clock())
        try:
            with self._db.connection() as conn:
                conn.execute(
                    "INSERT INTO babies (id, name, created_at) VALUES (?, ?, ?)",
                    (baby_id, name, now),
                )
                conn.executemany(
                    "INSERT INTO baby_parents (baby_id, user_email) VALUES (?, ?)",
                    [(baby_id, email) for email in parents],
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            raise ValidationFailure(f"baby {baby_id} already exists") from exc
        return Baby(id=baby_id, name=name, parent_ids=parents, created_at=from_iso(now))


class SqliteEventTypeRepository(EventTypeRepository):
    def __init__(self, db: SqliteDatabase, *, clock: Clock = utc_now) -> None:
        self._db = db
        self._clock = clock

    def _get(self, type_id: str) -> EventType:
        with self._db.connection() as conn:
            row = conn.execute("SELECT * FROM event_types WHERE id = ?", (type_id,)).fetchone()
        if row is None:
            raise NotFound(f"Event type {type_id} not found")
        return _row_to_event_type(row)

    def list(self, baby_id: str) -> List[EventType]:
        with self._db.connection() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM event_types
                WHERE baby_id = ?
                ORDER BY sort_order ASC, created_at ASC, id ASC
                """,
                (baby_id,),
            ).fetchall()
        return [_row_to_event_type(row) for row in rows]

    def create(
        self,
        *,
        baby_id: str,
        name: str,
        created_by: str,
        active: bool = True,
        order: Optional[float] = None,
    ) -> EventType:
        type_id = new_id()
        now = to_iso(self._clock())
        with self._db.connection() as conn:
            if order is None:
                current_max = conn.execute(
                    "SELECT MAX(sort_order) FROM event_types WHERE baby_id = ?",
                    (baby_id,),
                ).fetchone()[0]
                order = (current_max or 0) + 1
            conn.execute(
                """
                INSERT INTO event_types (
                    id,
                    baby_id,
                    name,
                    active,
                    sort_order,
                    created_by,
                    created_at,
                    updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (type_id, baby_id, name, 1 if active else 0, order, created_by, now, now),
            )
            conn.commit()
        return self._get(type_id)

    def patch(
        self,
        type_id: str,
        *,
        name: object = UNSET,
        active: object = UNSET,
        order: object = UNSET,
    ) -> EventType:
        fields: List[str] = []
        params: List[object] = []
        if name is not UNSET:
            fields.append("name = ?")
            params.append(name)
        if active is not UNSET:
            fields.append("active = ?")
            params.append(1 if active else 0)
        if order is not UNSET:
            fields.append("sort_order = ?")
            params.append(order)
        if not fields:
            return self._get(type_id)
        fields.append("updated_at = ?")
        params.append(to_iso(self._clock()))
        params.append(type_id)
        set_clause = ", ".join(fields)
        with self._db.connection() as conn:
            cursor = conn.execute(f"UPDATE event_types SET {set_clause} WHERE id = ?", tuple(params))
            conn.commit()
        if cursor.rowcount == 0:
            raise NotFound(f"Event type {type_id} not found")
        return self._get(type_id)

    def remove(self, type_id: str) -> None:
        with self._db.connection() as conn:
            cursor = conn.execute("DELETE FROM event_types WHERE id = ?", (type_id,))
            conn.commit()
        if cursor.rowcount == 0:
            raise NotFound(f"Event type {type_id} not found")


class SqliteEventRepository(EventRepository):
    def __init__(self, db: SqliteDatabase, *, clock: Clock = utc_now) -> None:
        self._db = db
        self._clock = clock

    def list(self, baby_id: str, *, limit: Optional[int] = None, cursor: Optional[str] = None) -> EventPage:
        page_size = resolve_limit(limit)
        query = """
            SELECT *
            FROM events
            WHERE baby_id = ?
        """
        params: List[object] = [baby_id]
        if cursor:
            happened_at, event_id = decode_cursor(cursor)
            happened_iso = to_iso(happened_at)
            query += "\n              AND (happened_at < ? OR (happened_at = ? AND id < ?))"
            params.extend([happened_iso, happened_iso, event_id])
        query += "\n            ORDER BY happened_at DESC, id DESC\n            LIMIT ?"
        # One extra row tells us whether another page exists.
        params.append(page_size + 1)
        with self._db.connection() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        items = [_row_to_event(row) for row in rows[:page_size]]
        next_cursor = None
        if len(rows) > page_size:
            last = items[-1]
            next_cursor = encode_cursor(last.happened_at, last.id)
        return EventPage(items=items, next_cursor=next_cursor)

    def get(self, event_id: str) -> Event:
        with self._db.connection() as conn:
            row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
        if row is None:
            raise NotFound(f"Event {event_id} not found")
        return _row_to_event(row)

    def create(self, *, baby_id: str, type_id: str, created_by: str, note: Optional[str] = None) -> Event:
        event_id = new_id()
        now = to_iso(self._clock())
        with self._db.connection() as conn:
            conn.execute(
                """
                INSERT INTO events (
                    id,
                    baby_id,
                    type_id,
                    note,
                    happened_at,
                    created_by,
                    created_at,
                    updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (event_id, baby_id, type_id, note, now, created_by, now, now),
            )
            conn.commit()
        return self.get(event_id)

    def patch(self, event_id: str, *, type_id: object = UNSET, note: object = UNSET) -> Event:
        fields: List[str] = []
        params: List[object] = []
        if type_id is not UNSET:
            fields.append("type_id = ?")
            params.append(type_id)
        if note is not UNSET:
            fields.append("note = ?")
            params.append(note)
        if not fields:
            return self.get(event_id)
        fields.append("updated_at = ?")
        params.append(to_iso(self._clock()))
        params.append(event_id)
        set_clause = ", ".join(fields)
        with self._db.connection() as conn:
            cursor = conn.execute(f"UPDATE events SET {set_clause} WHERE id = ?", tuple(params))
            conn.commit()
        if cursor.rowcount == 0:
            raise NotFound(f"Event {event_id} not found")
        return self.get(event_id)

    def remove(self, event_id: str) -> None:
        with self._db.connection() as conn:
            cursor = conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
            conn.commit()
        if cursor.rowcount == 0:
            raise NotFound(f"Event {event_id} not found")


def build_sqlite_repositories(
    path: Path,
    *,
    clock: Clock = utc_now,
    rounds: int = DEFAULT_ROUNDS,
) -> Repositories:
    db = SqliteDatabase(path)
    db.initialize()
    return Repositories(
        auth=SqliteAuthRepository(db, clock=clock, rounds=rounds),
        babies=SqliteBabyRepository(db, clock=clock),
        event_types=SqliteEventTypeRepository(db, clock=clock),
        events=SqliteEventRepository(db, clock=clock),
    )
