import sqlite3

import pytest

from db import database
from db.schema import SCHEMA_VERSION
from db.database import transaction


def _count_users(conn):
    return conn.execute("SELECT COUNT(*) FROM users_profile").fetchone()[0]


def _insert_user(conn, phone, code):
    conn.execute(
        """
        INSERT INTO users_profile (phone, referral_code, date_joined, created_at, updated_at)
        VALUES (?, ?, '2026-01-01', '2026-01-01 00:00:00', '2026-01-01 00:00:00')
        """,
        (phone, code),
    )


def test_init_db_is_idempotent_and_versioned(conn):
    database.init_db()
    assert database.get_schema_version(conn) == SCHEMA_VERSION
    assert conn.execute("SELECT COUNT(*) FROM app_config").fetchone()[0] == 1


def test_transaction_rolls_back_on_error(conn):
    with pytest.raises(RuntimeError):
        with transaction(conn):
            _insert_user(conn, "9000000001", "10001")
            raise RuntimeError("boom")

    assert _count_users(conn) == 0
    assert conn.in_transaction is False


def test_nested_transaction_rolls_back_only_inner_block(conn):
    with transaction(conn):
        _insert_user(conn, "9000000001", "10001")
        with pytest.raises(RuntimeError):
            with transaction(conn):
                _insert_user(conn, "9000000002", "10002")
                raise RuntimeError("inner")

    phones = [row[0] for row in conn.execute("SELECT phone FROM users_profile").fetchall()]
    assert phones == ["9000000001"]


def test_referral_code_must_be_unique(conn):
    _insert_user(conn, "9000000001", "10001")
    with pytest.raises(sqlite3.IntegrityError):
        _insert_user(conn, "9000000002", "10001")
