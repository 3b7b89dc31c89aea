"""CRUD operations for the posts and post_meta tables."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from datetime import datetime, timezone


def _placeholders(values: Sequence[object]) -> str:
    return ", ".join("?" for _ in values)


def insert_post(
    conn: sqlite3.Connection,
    post_type: str,
    *,
    post_status: str = "publish",
    title: str = "",
    created_at: str | None = None,
) -> int:
    """Insert a post and return its ID.

    Args:
        conn: Database connection.
        post_type: Post type (e.g. "post", "page").
        post_status: Post status (default "publish").
        title: Post title.
        created_at: ISO-8601 timestamp (defaults to now, UTC).

    Returns:
        The new post ID.
    """
    cursor = conn.execute(
        """
        INSERT INTO posts (post_type, post_status, title, created_at)
        VALUES (?, ?, ?, ?)
        """,
        (
            post_type,
            post_status,
            title,
            created_at or datetime.now(timezone.utc).isoformat(),
        ),
    )
    conn.commit()
    return int(cursor.lastrowid)


def delete_post(conn: sqlite3.Connection, post_id: int) -> bool:
    """Delete a post (and its meta). Returns True if a row was deleted."""
    cursor = conn.execute("DELETE FROM posts WHERE id = ?", (post_id,))
    conn.commit()
    return cursor.rowcount > 0


def count_posts(
    conn: sqlite3.Connection, post_types: Sequence[str], post_status: str
) -> int:
    """Count posts matching any of the given types and the status."""
    if not post_types:
        return 0
    cursor = conn.execute(
        f"""
        SELECT COUNT(*) FROM posts
        WHERE post_type IN ({_placeholders(post_types)})
          AND post_status = ?
        """,  # nosec B608 - placeholders only
        (*post_types, post_status),
    )
    return int(cursor.fetchone()[0])


def get_post_ids_page(
    conn: sqlite3.Connection,
    post_types: Sequence[str],
    post_status: str,
    limit: int,
    offset: int,
) -> list[int]:
    """Get one page of matching post IDs, ordered by ID ascending."""
    if not post_types:
        return []
    cursor = conn.execute(
        f"""
        SELECT id FROM posts
        WHERE post_type IN ({_placeholders(post_types)})
          AND post_status = ?
        ORDER BY id ASC
        LIMIT ? OFFSET ?
        """,  # nosec B608 - placeholders only
        (*post_types, post_status, limit, offset),
    )
    return [int(row[0]) for row in cursor.fetchall()]


def set_post_meta(
    conn: sqlite3.Connection, post_id: int, meta_key: str, meta_value: str
) -> bool:
    """Insert or update one meta value for a post.

    Returns:
        True if the post exists and the value was written.
    """
    cursor = conn.execute(
        """
        INSERT INTO post_meta (post_id, meta_key, meta_value)
        SELECT id, ?, ? FROM posts WHERE id = ?
        ON CONFLICT(post_id, meta_key) DO UPDATE SET meta_value = excluded.meta_value
        """,
        (meta_key, meta_value, post_id),
    )
    conn.commit()
    return cursor.rowcount > 0


def get_post_meta(
    conn: sqlite3.Connection, post_id: int, meta_key: str
) -> str | None:
    """Get one meta value for a post, or None if unset."""
    cursor = conn.execute(
        "SELECT meta_value FROM post_meta WHERE post_id = ? AND meta_key = ?",
        (post_id, meta_key),
    )
    row = cursor.fetchone()
    return row[0] if row else None


def count_posts_with_meta(
    conn: sqlite3.Connection,
    post_types: Sequence[str],
    post_status: str,
    meta_key: str,
) -> int:
    """Count matching posts that carry the given meta key."""
    if not post_types:
        return 0
    cursor = conn.execute(
        f"""
        SELECT COUNT(*) FROM posts p
        JOIN post_meta m ON m.post_id = p.id AND m.meta_key = ?
        WHERE p.post_type IN ({_placeholders(post_types)})
          AND p.post_status = ?
        """,  # nosec B608 - placeholders only
        (meta_key, *post_types, post_status),
    )
    return int(cursor.fetchone()[0])


def get_meta_date_distribution(
    conn: sqlite3.Connection,
    post_types: Sequence[str],
    post_status: str,
    meta_key: str,
) -> dict[str, int]:
    """Group matching posts by the UTC date stored in an epoch-seconds meta key.

    Returns:
        Mapping of YYYY-MM-DD to post count, most recent date first.
    """
    if not post_types:
        return {}
    cursor = conn.execute(
        f"""
        SELECT date(CAST(m.meta_value AS INTEGER), 'unixepoch') AS scan_date,
               COUNT(*) AS count
        FROM posts p
        JOIN post_meta m ON m.post_id = p.id AND m.meta_key = ?
        WHERE p.post_type IN ({_placeholders(post_types)})
          AND p.post_status = ?
        GROUP BY scan_date
        ORDER BY scan_date DESC
        """,  # nosec B608 - placeholders only
        (meta_key, *post_types, post_status),
    )
    return {row[0]: int(row[1]) for row in cursor.fetchall() if row[0] is not None}
