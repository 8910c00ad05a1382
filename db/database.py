import logging
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path

from config import get_config_value, load_config
from .schema import SCHEMA_SQL, INDEXES_SQL, SEED_SQL, SCHEMA_VERSION

CONFIG_DIR = Path.home() / ".quizladder"
DB_PATH = CONFIG_DIR / "quizladder.db"

logger = logging.getLogger(__name__)

def get_db_path() -> Path:
    """Configured database path, falling back to ~/.quizladder/quizladder.db."""
    configured = get_config_value("database", "path")
    return Path(configured) if configured else DB_PATH

def init_db():
    """Initialize the database by creating tables, indexes and settings rows if they don't exist."""
    db_path = get_db_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with get_conn() as conn:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.executescript(SCHEMA_SQL)
        conn.executescript(INDEXES_SQL)
        conn.executescript(SEED_SQL)
        ensure_profile_counters(conn)
        ensure_attempt_columns(conn)
        ensure_schema_version(conn)
    logger.info("Database ready at %s (schema v%s)", db_path, SCHEMA_VERSION)

def ensure_profile_counters(conn: sqlite3.Connection) -> None:
    """Ensure users_profile has the per-user ad/reel counters for existing installs."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA table_info(users_profile)")
    columns = {row[1] for row in cursor.fetchall()}
    if "total_ads_watched" not in columns:
        cursor.execute(
            "ALTER TABLE users_profile ADD COLUMN total_ads_watched INTEGER NOT NULL DEFAULT 0"
        )
    if "videos_watched" not in columns:
        cursor.execute(
            "ALTER TABLE users_profile ADD COLUMN videos_watched INTEGER NOT NULL DEFAULT 0"
        )

def ensure_attempt_columns(conn: sqlite3.Connection) -> None:
    """Ensure level_attempts has the lifeline bookkeeping and question locale columns."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA table_info(level_attempts)")
    columns = {row[1] for row in cursor.fetchall()}
    if "lifelines_used" not in columns:
        cursor.execute("ALTER TABLE level_attempts ADD COLUMN lifelines_used INTEGER NOT NULL DEFAULT 0")
    if "lifeline_videos_watched" not in columns:
        cursor.execute(
            "ALTER TABLE level_attempts ADD COLUMN lifeline_videos_watched INTEGER NOT NULL DEFAULT 0"
        )
    if "question_medium" not in columns:
        cursor.execute("ALTER TABLE level_attempts ADD COLUMN question_medium TEXT")

def get_schema_version(conn: sqlite3.Connection) -> int:
    """Read the SQLite schema version from PRAGMA user_version."""
    cursor = conn.cursor()
    cursor.execute("PRAGMA user_version")
    row = cursor.fetchone()
    return int(row[0]) if row else 0

def set_schema_version(conn: sqlite3.Connection, version: int) -> None:
    """Set the SQLite schema version via PRAGMA user_version."""
    conn.execute(f"PRAGMA user_version = {int(version)}")

def ensure_schema_version(conn: sqlite3.Connection) -> None:
    """Ensure the current schema version is written to the database."""
    current = get_schema_version(conn)
    if current != SCHEMA_VERSION:
        set_schema_version(conn, SCHEMA_VERSION)

def execute_returning(conn: sqlite3.Connection, sql: str, params=()):
    """Run a write with a RETURNING clause and return its single row, or None when nothing matched."""
    rows = conn.execute(sql, params).fetchall()
    return rows[0] if rows else None

@contextmanager
def transaction(conn: sqlite3.Connection):
    """Run a block as one atomic unit of work.

    The outermost call issues BEGIN IMMEDIATE, taking the database write lock
    up front so that read-decide-write sequences inside the block cannot
    interleave with another writer. Nested calls open a SAVEPOINT, which lets
    a caller roll back an inner step without losing the outer transaction.
    Any exception rolls back and propagates.
    """
    if conn.in_transaction:
        savepoint = f"sp_{uuid.uuid4().hex}"
        conn.execute(f"SAVEPOINT {savepoint}")
        try:
            yield conn
        except BaseException:
            conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
            conn.execute(f"RELEASE SAVEPOINT {savepoint}")
            raise
        conn.execute(f"RELEASE SAVEPOINT {savepoint}")
        return
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()

@contextmanager
def get_conn():
    """Context manager for SQLite connection, using row_factory for dict-like rows.

    Connections run in autocommit mode; writes go through transaction().
    """
    config = load_config()
    conn = sqlite3.connect(
        get_db_path(),
        timeout=config["database"]["busy_timeout_seconds"],
        isolation_level=None,
        check_same_thread=False,
    )
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()

def get_db():
    """FastAPI dependency that yields a DB connection and closes it afterwards."""
    with get_conn() as conn:
        yield conn
