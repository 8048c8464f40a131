"""
Database setup for the local node store.
"""
import sqlite3


SCHEMA = """
CREATE TABLE IF NOT EXISTS nodes (
    id1 BLOB PRIMARY KEY,
    kind TEXT NOT NULL,
    owner BLOB NOT NULL,
    parent_id BLOB,
    ref_id BLOB,
    target_id BLOB,
    creation_time INTEGER NOT NULL,
    data BLOB,
    blob BLOB,
    blob_length INTEGER,
    is_licensed INTEGER NOT NULL DEFAULT 0,
    license_min_distance INTEGER NOT NULL DEFAULT 0,
    nonce BLOB NOT NULL,
    signature BLOB NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_nodes_parent ON nodes(parent_id, creation_time);

CREATE INDEX IF NOT EXISTS idx_nodes_target ON nodes(target_id);

CREATE TABLE IF NOT EXISTS licenses (
    node_id1 BLOB NOT NULL,
    kind TEXT NOT NULL,
    target BLOB NOT NULL,
    granted_by BLOB NOT NULL,
    created_at INTEGER NOT NULL,
    PRIMARY KEY (node_id1, target)
);

CREATE TABLE IF NOT EXISTS destroyed_nodes (
    id1 BLOB PRIMARY KEY,
    destroyed_by BLOB NOT NULL,
    destroyed_at INTEGER NOT NULL
)
"""


def _load_schema(schema_sql: str, conn: sqlite3.Connection) -> None:
    """Run each statement of a schema script."""
    for statement in schema_sql.split(';'):
        statement = statement.strip()
        if statement:
            conn.execute(statement + ';')


def get_connection(db_path: str = "threadchat.db") -> sqlite3.Connection:
    """Get a database connection with proper settings."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    if db_path != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")
    return conn


def init_database(conn: sqlite3.Connection) -> None:
    """Create the node store tables if they do not exist yet."""
    _load_schema(SCHEMA, conn)
    conn.commit()
