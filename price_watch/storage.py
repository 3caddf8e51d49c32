"""SQLite persistence for users and purchases."""

import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from price_watch.models import PurchaseRecord, User

_UNSET = object()

EDITABLE_FIELDS = ("sku", "title", "paid_price", "purchase_date", "watched", "last_price", "last_checked")


def _ts(value: datetime | None) -> str | None:
    """Store datetimes as UTC ISO-8601 so string order matches time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _new_id() -> str:
    return uuid.uuid4().hex


def _purchase_from_row(row: sqlite3.Row) -> PurchaseRecord:
    return PurchaseRecord(
        id=row["id"],
        user_id=row["user_id"],
        sku=row["sku"],
        title=row["title"],
        paid_price=row["paid_price"],
        purchase_date=_dt(row["purchase_date"]),
        watched=bool(row["watched"]),
        last_price=row["last_price"],
        last_checked=_dt(row["last_checked"]),
    )


def _user_from_row(row: sqlite3.Row) -> User:
    return User(id=row["id"], email=row["email"], created_at=_dt(row["created_at"]))


class PurchaseStore:
    """
    Users and their purchases in one SQLite file.

    Every method opens its own connection and commits on success, so each
    update is atomic per record. Two overlapping check runs for the same
    user are not coordinated: the later write of last_price wins.
    """

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    @contextmanager
    def get_connection(self):
        """Context manager for SQLite connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    email TEXT UNIQUE,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS purchases (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    sku TEXT NOT NULL,
                    title TEXT,
                    paid_price REAL NOT NULL CHECK (paid_price >= 0),
                    purchase_date TIMESTAMP NOT NULL,
                    watched INTEGER NOT NULL DEFAULT 1,
                    last_price REAL,
                    last_checked TIMESTAMP,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_purchases_user_watched_date
                ON purchases(user_id, watched, purchase_date)
            """)

    # -- users -----------------------------------------------------------------

    def create_user(self, email: str | None) -> User:
        user = User(id=_new_id(), email=email, created_at=datetime.now(timezone.utc))
        with self.get_connection() as conn:
            conn.execute(
                "INSERT INTO users (id, email, created_at) VALUES (?, ?, ?)",
                (user.id, user.email, _ts(user.created_at)),
            )
        return user

    def get_user(self, user_id: str) -> User | None:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _user_from_row(row) if row else None

    def get_user_by_email(self, email: str) -> User | None:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        return _user_from_row(row) if row else None

    def users_with_watched_since(self, cutoff: datetime) -> list[User]:
        """Users owning at least one watched purchase dated on or after cutoff."""
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM users u
                WHERE EXISTS (
                    SELECT 1 FROM purchases p
                    WHERE p.user_id = u.id AND p.watched = 1 AND p.purchase_date >= ?
                )
                ORDER BY u.created_at
                """,
                (_ts(cutoff),),
            ).fetchall()
        return [_user_from_row(r) for r in rows]

    # -- purchases -------------------------------------------------------------

    def add_purchase(
        self,
        user_id: str,
        sku: str,
        paid_price: float,
        purchase_date: datetime,
        title: str | None = None,
        watched: bool = True,
    ) -> PurchaseRecord:
        record = PurchaseRecord(
            id=_new_id(),
            user_id=user_id,
            sku=sku,
            title=title,
            paid_price=paid_price,
            purchase_date=purchase_date,
            watched=watched,
        )
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO purchases (id, user_id, sku, title, paid_price, purchase_date, watched, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.user_id,
                    record.sku,
                    record.title,
                    record.paid_price,
                    _ts(record.purchase_date),
                    int(record.watched),
                    _ts(datetime.now(timezone.utc)),
                ),
            )
        return self.get_purchase(record.id)

    def get_purchase(self, purchase_id: str) -> PurchaseRecord | None:
        with self.get_connection() as conn:
            row = conn.execute("SELECT * FROM purchases WHERE id = ?", (purchase_id,)).fetchone()
        return _purchase_from_row(row) if row else None

    def list_purchases(self, user_id: str) -> list[PurchaseRecord]:
        """All purchases for a user, most recent purchase first."""
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM purchases WHERE user_id = ? ORDER BY purchase_date DESC",
                (user_id,),
            ).fetchall()
        return [_purchase_from_row(r) for r in rows]

    def find_watched_since(self, user_id: str, cutoff: datetime) -> list[PurchaseRecord]:
        """Coarse eligibility pre-filter: watched and purchased on or after cutoff."""
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM purchases
                WHERE user_id = ? AND watched = 1 AND purchase_date >= ?
                ORDER BY purchase_date, rowid
                """,
                (user_id, _ts(cutoff)),
            ).fetchall()
        return [_purchase_from_row(r) for r in rows]

    def update_purchase(self, purchase_id: str, /, **fields) -> PurchaseRecord | None:
        """Overwrite the given editable fields; unknown names raise KeyError."""
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise KeyError(f"not editable: {', '.join(sorted(unknown))}")
        if not fields:
            return self.get_purchase(purchase_id)

        values = []
        for name, value in fields.items():
            if name in ("purchase_date", "last_checked"):
                value = _ts(value)
            elif name == "watched":
                value = int(bool(value))
            values.append(value)
        assignments = ", ".join(f"{name} = ?" for name in fields)
        with self.get_connection() as conn:
            conn.execute(
                f"UPDATE purchases SET {assignments} WHERE id = ?",
                (*values, purchase_id),
            )
        return self.get_purchase(purchase_id)

    def record_check(self, purchase_id: str, checked_at: datetime, last_price=_UNSET) -> None:
        """
        Store the outcome of a price check without touching other fields.

        last_price is written only when passed (None included). last_checked
        never moves backwards.
        """
        checked = _ts(checked_at)
        monotonic = "last_checked = CASE WHEN last_checked IS NULL OR last_checked < ? THEN ? ELSE last_checked END"
        with self.get_connection() as conn:
            if last_price is _UNSET:
                conn.execute(
                    f"UPDATE purchases SET {monotonic} WHERE id = ?",
                    (checked, checked, purchase_id),
                )
            else:
                conn.execute(
                    f"UPDATE purchases SET last_price = ?, {monotonic} WHERE id = ?",
                    (last_price, checked, checked, purchase_id),
                )

    def delete_purchase(self, purchase_id: str) -> bool:
        with self.get_connection() as conn:
            cur = conn.execute("DELETE FROM purchases WHERE id = ?", (purchase_id,))
        return cur.rowcount > 0
