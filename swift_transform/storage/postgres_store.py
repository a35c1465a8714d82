"""
PostgreSQL object store backend.

One row per object key, body kept as BYTEA. Connection handling is delegated
to DatabaseConnectionPool.
"""

from psycopg import Error as PsycopgError

from swift_transform.core.exceptions import StorageFailure
from swift_transform.observability.logger import get_logger

from .connection import DatabaseConnectionPool
from .object_store import ObjectStore

logger = get_logger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS transformation_object (
    object_key TEXT PRIMARY KEY,
    body BYTEA NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""

UPSERT_SQL = """
INSERT INTO transformation_object (object_key, body, updated_at)
VALUES (%s, %s, now())
ON CONFLICT (object_key) DO UPDATE
SET body = EXCLUDED.body, updated_at = now()
"""


class PostgresObjectStore(ObjectStore):
    """
    Object store on a PostgreSQL table.

    Attributes:
        pool: Open connection pool (owned by this store when owns_pool is True)
        owns_pool: Whether close() also closes the pool
    """

    def __init__(self, pool: DatabaseConnectionPool, owns_pool: bool = True, create_schema: bool = True):
        self.pool = pool
        self.owns_pool = owns_pool
        if create_schema:
            self.ensure_schema()

    def ensure_schema(self) -> None:
        try:
            self.pool.execute_command(CREATE_TABLE_SQL)
        except PsycopgError as e:
            raise StorageFailure(f"Failed to create object table: {e}") from e
        logger.debug("Object table ready")

    def put(self, key: str, body: bytes) -> None:
        try:
            self.pool.execute_command(UPSERT_SQL, (key, body))
        except PsycopgError as e:
            raise StorageFailure(f"Failed to write object {key}: {e}") from e

    def get(self, key: str) -> bytes | None:
        try:
            rows = self.pool.execute_query(
                "SELECT body FROM transformation_object WHERE object_key = %s", (key,)
            )
        except PsycopgError as e:
            raise StorageFailure(f"Failed to read object {key}: {e}") from e
        if not rows:
            return None
        return bytes(rows[0]["body"])

    def list(self, prefix: str) -> list[str]:
        try:
            rows = self.pool.execute_query(
                "SELECT object_key FROM transformation_object "
                "WHERE starts_with(object_key, %s) ORDER BY object_key COLLATE \"C\"",
                (prefix,),
            )
        except PsycopgError as e:
            raise StorageFailure(f"Failed to list objects with prefix {prefix}: {e}") from e
        return [row["object_key"] for row in rows]

    def delete(self, key: str) -> bool:
        try:
            deleted = self.pool.execute_command(
                "DELETE FROM transformation_object WHERE object_key = %s", (key,)
            )
        except PsycopgError as e:
            raise StorageFailure(f"Failed to delete object {key}: {e}") from e
        return deleted > 0

    def close(self) -> None:
        if self.owns_pool:
            self.pool.close()
