"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper (same as records/store.py).
AccountStore is the repository; _row_to_account is the mapper.
Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  UNIQUE(username) and UNIQUE(email) are enforced by the schema. The
  exists_by_* pre-checks in provisioning give friendly errors, but two
  concurrent registrations can both pass them; the constraint is what
  actually keeps the invariant. save() lets IntegrityError propagate so the
  caller can translate it.

  Roles live in their own table with UNIQUE(account_id, role), so a role set
  can never hold duplicates even if a caller passes a list.

DB path: auth/registrar_auth.db (sibling to records/registrar_records.db).

Layer rule: no imports from api/, web/ or records/.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine

from auth.models import ROLE_ADMIN, Account

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'registrar_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("enabled", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

_account_roles = Table(
    "account_roles",
    _metadata,
    Column("account_id", Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
    Column("role", String(64), nullable=False),
    UniqueConstraint("account_id", "role", name="uq_account_role"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Opened once per process (application lifespan) and closed at shutdown.
    Never instantiate at module level -- tests inject in-memory stores.

    Usage:
        store = AccountStore()
        account = store.save(Account(username="admin", email="a@x", hashed_password=..., roles={"ROLE_ADMIN"}))
        found = store.find_by_username("admin")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists_by_username(self, username: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_accounts.c.id).where(_accounts.c.username == username)).first()
        return row is not None

    def exists_by_email(self, email: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_accounts.c.id).where(_accounts.c.email == email)).first()
        return row is not None

    def find_by_username(self, username: str) -> Account | None:
        """Look up an account by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.username == username)).fetchone()
            if row is None:
                return None
            return _row_to_account(row, self._roles_for(conn, row.id))

    def get_by_id(self, account_id: int) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
            if row is None:
                return None
            return _row_to_account(row, self._roles_for(conn, row.id))

    def list_accounts(self) -> list[Account]:
        """Return all accounts ordered by username."""
        with self.engine.connect() as conn:
            rows = conn.execute(_accounts.select().order_by(_accounts.c.username)).fetchall()
            role_rows = conn.execute(select(_account_roles.c.account_id, _account_roles.c.role)).fetchall()
        roles: dict[int, set[str]] = defaultdict(set)
        for account_id, role in role_rows:
            roles[account_id].add(role)
        return [_row_to_account(r, roles.get(r.id, set())) for r in rows]

    def count(self) -> int:
        """Return the number of accounts. Used by the seeding routine."""
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_accounts)).scalar()
        return result or 0

    def count_enabled_admins(self) -> int:
        """Return the number of enabled accounts holding ROLE_ADMIN."""
        stmt = (
            select(func.count())
            .select_from(_accounts.join(_account_roles, _account_roles.c.account_id == _accounts.c.id))
            .where((_account_roles.c.role == ROLE_ADMIN) & (_accounts.c.enabled == 1))
        )
        with self.engine.connect() as conn:
            result = conn.execute(stmt).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, account: Account) -> Account:
        """Insert a new account (id is None) or update an existing one.

        The account row and its role rows are written in one transaction.
        username is never changed by an update.

        Raises sqlalchemy.exc.IntegrityError if username or email collides
        with another account, and LookupError if an update names an id that
        does not exist. Returns the stored Account (fresh copy).
        """
        with self.engine.begin() as conn:
            if account.id is None:
                result = conn.execute(
                    _accounts.insert().values(
                        username=account.username,
                        email=account.email,
                        hashed_password=account.hashed_password,
                        enabled=1 if account.enabled else 0,
                        created_at=_now_iso(),
                    )
                )
                account_id = result.inserted_primary_key[0]
            else:
                account_id = account.id
                result = conn.execute(
                    _accounts.update()
                    .where(_accounts.c.id == account_id)
                    .values(
                        email=account.email,
                        hashed_password=account.hashed_password,
                        enabled=1 if account.enabled else 0,
                    )
                )
                if result.rowcount == 0:
                    raise LookupError(f"Account {account_id} not found")
                conn.execute(_account_roles.delete().where(_account_roles.c.account_id == account_id))
            if account.roles:
                conn.execute(
                    _account_roles.insert(),
                    [{"account_id": account_id, "role": role} for role in sorted(set(account.roles))],
                )
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
            return _row_to_account(row, self._roles_for(conn, account_id))

    def update_last_login(self, account_id: int) -> None:
        """Stamp the current UTC timestamp as last_login for the given account."""
        with self.engine.begin() as conn:
            conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(last_login=_now_iso()))

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _roles_for(conn: Connection, account_id: int) -> set[str]:
        rows = conn.execute(select(_account_roles.c.role).where(_account_roles.c.account_id == account_id)).fetchall()
        return {r.role for r in rows}


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row, roles: set[str]) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        roles=set(roles),
        enabled=bool(row.enabled),
        created_at=row.created_at,
        last_login=row.last_login,
    )
