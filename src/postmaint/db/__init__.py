"""Database module for postmaint.

Module organization:
- connection.py: Connection setup and lock handling
- schema.py: Schema creation and version checks
- queries.py: CRUD operations for posts and post meta

The scan_options table is accessed only through
postmaint.scan.store.SqliteProgressStore.
"""

from .connection import (
    DatabaseLockedError,
    ensure_db_directory,
    is_lock_error,
    open_connection,
)
from .queries import (
    count_posts,
    count_posts_with_meta,
    delete_post,
    get_meta_date_distribution,
    get_post_ids_page,
    get_post_meta,
    insert_post,
    set_post_meta,
)
from .schema import SCHEMA_VERSION, create_schema, initialize_database

__all__ = [
    # Connection
    "DatabaseLockedError",
    "ensure_db_directory",
    "is_lock_error",
    "open_connection",
    # Schema
    "SCHEMA_VERSION",
    "create_schema",
    "initialize_database",
    # Queries
    "count_posts",
    "count_posts_with_meta",
    "delete_post",
    "get_meta_date_distribution",
    "get_post_ids_page",
    "get_post_meta",
    "insert_post",
    "set_post_meta",
]
