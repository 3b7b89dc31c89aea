"""Database schema definition for postmaint.

Tables:
- _meta: schema version tracking
- posts: content records scanned by the engine
- post_meta: per-post key/value metadata (the scan stamps a timestamp here)
- scan_options: durable key/value store for scan state (JSON values)
"""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS _meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    post_type TEXT NOT NULL,
    post_status TEXT NOT NULL DEFAULT 'publish',
    title TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL  -- ISO 8601 UTC timestamp
);

CREATE INDEX IF NOT EXISTS idx_posts_type_status
    ON posts(post_type, post_status, id);

CREATE TABLE IF NOT EXISTS post_meta (
    post_id INTEGER NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
    meta_key TEXT NOT NULL,
    meta_value TEXT NOT NULL,
    PRIMARY KEY (post_id, meta_key)
);

CREATE INDEX IF NOT EXISTS idx_post_meta_key ON post_meta(meta_key);

CREATE TABLE IF NOT EXISTS scan_options (
    name TEXT PRIMARY KEY,
    value TEXT NOT NULL,     -- JSON encoded
    updated_at TEXT NOT NULL -- ISO 8601 UTC timestamp
);
"""


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """Get the current schema version, or None if the schema is missing."""
    try:
        cursor = conn.execute("SELECT value FROM _meta WHERE key = 'schema_version'")
        row = cursor.fetchone()
        return int(row[0]) if row else None
    except sqlite3.OperationalError:
        # Table doesn't exist
        return None


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the database schema if it doesn't exist.

    Args:
        conn: An open database connection.
    """
    conn.executescript(SCHEMA_SQL)

    conn.execute(
        "INSERT OR IGNORE INTO _meta (key, value) VALUES ('schema_version', ?)",
        (str(SCHEMA_VERSION),),
    )
    # executescript() commits implicitly; the INSERT above opens a new
    # implicit transaction that must be closed before BEGIN IMMEDIATE works.
    conn.commit()


def initialize_database(conn: sqlite3.Connection) -> None:
    """Initialize the database, creating tables if needed.

    Raises:
        RuntimeError: If the database was created by a newer postmaint.
    """
    current_version = get_schema_version(conn)
    if current_version is None:
        create_schema(conn)
    elif current_version > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current_version} is newer than "
            f"supported version {SCHEMA_VERSION}"
        )
