from __future__ import annotations

from store.db import Database, to_iso, utc_now


def record_fetch_success(
    db: Database,
    *,
    source_id: str,
    new_count: int,
    updated_count: int,
    total: int,
) -> None:
    now_iso = to_iso(utc_now())
    with db.lock:
        db.conn.execute(
            """
            INSERT INTO sources(source_id) VALUES(?)
            ON CONFLICT(source_id) DO NOTHING;
            """,
            (source_id,),
        )
        db.conn.execute(
            """
            UPDATE sources
            SET last_fetch_at = ?,
                last_success_at = ?,
                consecutive_failures = 0,
                last_error = NULL,
                last_error_at = NULL,
                success_count = success_count + 1,
                last_new_count = ?,
                last_updated_count = ?,
                last_total = ?
            WHERE source_id = ?;
            """,
            (now_iso, now_iso, new_count, updated_count, total, source_id),
        )
        db.conn.commit()


def record_fetch_error(db: Database, *, source_id: str, error: str) -> int:
    now_iso = to_iso(utc_now())
    with db.lock:
        db.conn.execute(
            """
            INSERT INTO sources(source_id) VALUES(?)
            ON CONFLICT(source_id) DO NOTHING;
            """,
            (source_id,),
        )
        db.conn.execute(
            """
            UPDATE sources
            SET last_fetch_at = ?,
                last_error_at = ?,
                consecutive_failures = consecutive_failures + 1,
                last_error = ?,
                error_count = error_count + 1
            WHERE source_id = ?;
            """,
            (now_iso, now_iso, error, source_id),
        )
        db.conn.commit()
        row = db.conn.execute(
            "SELECT consecutive_failures FROM sources WHERE source_id = ?;",
            (source_id,),
        ).fetchone()
    return int(row["consecutive_failures"])


def source_status(db: Database) -> list[dict]:
    with db.lock:
        rows = db.conn.execute(
            """
            SELECT source_id, last_fetch_at, last_success_at, last_error_at, last_error,
                   consecutive_failures, success_count, error_count,
                   last_new_count, last_updated_count, last_total
            FROM sources
            ORDER BY source_id ASC;
            """
        ).fetchall()
    return [dict(r) for r in rows]
