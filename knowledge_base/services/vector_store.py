"""SQLite vector store with sqlite_vec extension"""

import logging
import math
import sqlite3
import struct
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import sqlite_vec

from knowledge_base.config import config
from knowledge_base.errors import PersistenceError
from knowledge_base.models.embedding import Embedding
from knowledge_base.models.resource import Resource

logger = logging.getLogger(__name__)


class VectorStore:
    """SQLite-based store for resources and their per-user chunk embeddings"""

    def __init__(
        self, db_path: str, dimension: int | None = None, model_name: str | None = None
    ):
        self.db_path = db_path
        self.dimension = dimension or config.embedding_dimension
        self.model_name = model_name or config.embedding_model
        # For :memory: databases, we need to keep a persistent connection
        # because each connection gets a separate in-memory database
        self._memory_conn: sqlite3.Connection | None = None

    def _configure_connection(self, conn: sqlite3.Connection) -> sqlite3.Connection:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
        except Exception as e:
            # sqlite_vec might be statically linked into the interpreter's sqlite
            logger.warning(f"Could not load sqlite_vec extension: {e}")
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        """
        Create and configure a new database connection

        For :memory: databases, returns the persistent connection.
        For file databases, creates a new connection.
        """
        if self.db_path == ":memory:":
            if self._memory_conn is None:
                self._memory_conn = self._configure_connection(sqlite3.connect(self.db_path))
            return self._memory_conn

        return self._configure_connection(sqlite3.connect(self.db_path))

    def _ensure_connection(
        self, conn: sqlite3.Connection | None
    ) -> tuple[sqlite3.Connection, bool]:
        """
        Ensure we have a connection, creating one if needed

        Returns:
            Tuple of (connection, should_close)
        """
        if conn is not None:
            return conn, False

        new_conn = self._get_connection()
        # Never close :memory: connections (they're persistent)
        should_close = self.db_path != ":memory:"
        return new_conn, should_close

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run statements atomically: commit on success, roll back on any exception

        Raises:
            PersistenceError: If a statement or the commit fails
        """
        conn, should_close = self._ensure_connection(None)
        try:
            conn.execute("BEGIN")
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise PersistenceError(f"Database transaction failed: {e}") from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            if should_close:
                conn.close()

    async def initialize(self) -> None:
        """
        Initialize database, create tables and pin the embedding model

        Raises:
            PersistenceError: If the database was created for another model or dimension
        """
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        conn, should_close = self._ensure_connection(None)
        try:
            self._create_tables(conn)
            self._check_store_metadata(conn)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialize database: {e}") from e
        finally:
            if should_close:
                conn.close()

    def _create_tables(self, conn: sqlite3.Connection) -> None:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS resources (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                content TEXT NOT NULL,
                created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS embeddings (
                id TEXT PRIMARY KEY,
                resource_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                content TEXT NOT NULL,
                FOREIGN KEY (resource_id) REFERENCES resources(id) ON DELETE CASCADE
            )
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_embeddings_user_id
            ON embeddings(user_id)
        """)

        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_embeddings_resource_id
            ON embeddings(resource_id)
        """)

        # KNN search is partitioned by user so a query only scans its owner's vectors
        conn.execute(f"""
            CREATE VIRTUAL TABLE IF NOT EXISTS vec_embeddings USING vec0(
                embedding_id TEXT PRIMARY KEY,
                user_id text partition key,
                embedding float[{self.dimension}] distance_metric=cosine
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS store_metadata (
                id INTEGER PRIMARY KEY CHECK(id = 1),
                embedding_model TEXT NOT NULL,
                embedding_dimension INTEGER NOT NULL
            )
        """)

        conn.commit()

    def _check_store_metadata(self, conn: sqlite3.Connection) -> None:
        row = conn.execute(
            "SELECT embedding_model, embedding_dimension FROM store_metadata WHERE id = 1"
        ).fetchone()

        if row is None:
            conn.execute(
                "INSERT INTO store_metadata (id, embedding_model, embedding_dimension) "
                "VALUES (1, ?, ?)",
                (self.model_name, self.dimension),
            )
            conn.commit()
            return

        if row["embedding_model"] != self.model_name or row["embedding_dimension"] != self.dimension:
            raise PersistenceError(
                f"Database {self.db_path} was built with {row['embedding_model']} "
                f"({row['embedding_dimension']} dimensions), "
                f"not {self.model_name} ({self.dimension} dimensions)"
            )

    def _serialize(self, vector: list[float]) -> bytes:
        if len(vector) != self.dimension:
            raise PersistenceError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(vector)}"
            )
        return struct.pack(f"{len(vector)}f", *vector)

    def _insert_resource(
        self, conn: sqlite3.Connection, resource: Resource, embeddings: list[Embedding]
    ) -> None:
        conn.execute(
            """
            INSERT INTO resources (id, user_id, content, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
        """,
            (
                resource.id,
                resource.user_id,
                resource.content,
                resource.created_at.isoformat(),
                resource.updated_at.isoformat(),
            ),
        )

        for embedding in embeddings:
            if embedding.resource_id != resource.id or embedding.user_id != resource.user_id:
                raise PersistenceError(
                    f"Embedding {embedding.id} does not belong to resource {resource.id}"
                )

            conn.execute(
                """
                INSERT INTO embeddings (id, resource_id, user_id, content)
                VALUES (?, ?, ?, ?)
            """,
                (embedding.id, embedding.resource_id, embedding.user_id, embedding.content),
            )

            conn.execute(
                """
                INSERT INTO vec_embeddings (embedding_id, user_id, embedding)
                VALUES (?, ?, ?)
            """,
                (embedding.id, embedding.user_id, self._serialize(embedding.embedding)),
            )

    async def insert_resource(
        self,
        resource: Resource,
        embeddings: list[Embedding],
        conn: sqlite3.Connection | None = None,
    ) -> None:
        """
        Insert a resource together with all of its embeddings

        Without a connection the whole insert runs in its own transaction, so
        either everything becomes visible or nothing does.

        Args:
            resource: Resource to insert
            embeddings: Embeddings derived from the resource
            conn: Optional connection (caller manages the transaction)

        Raises:
            PersistenceError: If any insert fails
        """
        if conn is not None:
            try:
                self._insert_resource(conn, resource, embeddings)
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to insert resource {resource.id}: {e}") from e
            return

        with self.transaction() as tx_conn:
            self._insert_resource(tx_conn, resource, embeddings)

        logger.info(
            f"Stored resource {resource.id} with {len(embeddings)} embeddings "
            f"for user {resource.user_id}"
        )

    async def search(
        self,
        query_embedding: list[float],
        user_id: str,
        limit: int = 4,
        conn: sqlite3.Connection | None = None,
    ) -> list[tuple[str, float]]:
        """
        Vector similarity search over one user's embeddings

        Args:
            query_embedding: Query vector embedding
            user_id: Only this user's embeddings are searched
            limit: Maximum number of results
            conn: Optional connection (for transactions)

        Returns:
            list[tuple[str, float]]: (chunk content, cosine similarity), most similar first
        """
        query_bytes = self._serialize(query_embedding)
        conn, should_close = self._ensure_connection(conn)

        try:
            # sqlite_vec requires k = ? in WHERE clause instead of separate LIMIT
            cursor = conn.execute(
                """
                SELECT e.content, knn.distance
                FROM (
                    SELECT embedding_id, distance
                    FROM vec_embeddings
                    WHERE embedding MATCH ? AND k = ? AND user_id = ?
                ) knn
                INNER JOIN embeddings e ON e.id = knn.embedding_id
                WHERE e.user_id = ?
                ORDER BY knn.distance
            """,
                (query_bytes, limit, user_id, user_id),
            )

            results: list[tuple[str, float]] = []
            for row in cursor.fetchall():
                # Zero or NaN vectors have no cosine distance
                if row["distance"] is None or not math.isfinite(row["distance"]):
                    logger.warning(f"Skipping chunk with no cosine distance for user {user_id}")
                    continue
                # Cosine distance is 1 - cosine similarity; clamp float32 rounding
                similarity = max(-1.0, min(1.0, 1.0 - row["distance"]))
                results.append((row["content"], similarity))

            return results
        except sqlite3.Error as e:
            raise PersistenceError(f"Similarity search failed: {e}") from e
        finally:
            if should_close:
                conn.close()

    async def get_resource(
        self, resource_id: str, conn: sqlite3.Connection | None = None
    ) -> Resource | None:
        """Retrieve a resource by ID"""
        conn, should_close = self._ensure_connection(conn)

        try:
            row = conn.execute(
                """
                SELECT id, user_id, content, created_at, updated_at
                FROM resources
                WHERE id = ?
            """,
                (resource_id,),
            ).fetchone()

            if not row:
                return None

            return Resource(
                id=row["id"],
                user_id=row["user_id"],
                content=row["content"],
                created_at=row["created_at"],
                updated_at=row["updated_at"],
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load resource {resource_id}: {e}") from e
        finally:
            if should_close:
                conn.close()

    async def delete_resource(self, resource_id: str, user_id: str) -> bool:
        """
        Delete a user's resource and every embedding derived from it

        Returns:
            bool: False if the user owns no resource with that id
        """
        with self.transaction() as conn:
            owned = conn.execute(
                "SELECT 1 FROM resources WHERE id = ? AND user_id = ?", (resource_id, user_id)
            ).fetchone()
            if not owned:
                return False

            embedding_ids = [
                row["id"]
                for row in conn.execute(
                    "SELECT id FROM embeddings WHERE resource_id = ?", (resource_id,)
                )
            ]
            for embedding_id in embedding_ids:
                conn.execute(
                    "DELETE FROM vec_embeddings WHERE embedding_id = ?", (embedding_id,)
                )

            # embeddings rows go with the resource through ON DELETE CASCADE
            conn.execute("DELETE FROM resources WHERE id = ?", (resource_id,))

        logger.info(f"Deleted resource {resource_id} and {len(embedding_ids)} embeddings")
        return True

    async def count_resources(
        self, user_id: str | None = None, conn: sqlite3.Connection | None = None
    ) -> int:
        """Get number of resources, optionally for one user"""
        return self._count("resources", user_id, conn)

    async def count_embeddings(
        self, user_id: str | None = None, conn: sqlite3.Connection | None = None
    ) -> int:
        """Get number of embeddings, optionally for one user"""
        return self._count("embeddings", user_id, conn)

    def _count(self, table: str, user_id: str | None, conn: sqlite3.Connection | None) -> int:
        conn, should_close = self._ensure_connection(conn)

        try:
            if user_id is None:
                cursor = conn.execute(f"SELECT COUNT(*) FROM {table}")
            else:
                cursor = conn.execute(f"SELECT COUNT(*) FROM {table} WHERE user_id = ?", (user_id,))
            result = cursor.fetchone()
            return result[0] if result else 0
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to count {table}: {e}") from e
        finally:
            if should_close:
                conn.close()

    async def health_check(self, conn: sqlite3.Connection | None = None) -> bool:
        """Check if database is properly initialized"""
        conn, should_close = self._ensure_connection(conn)

        try:
            conn.execute("SELECT COUNT(*) FROM vec_embeddings").fetchone()
            return True
        except sqlite3.Error:
            return False
        finally:
            if should_close:
                conn.close()

    def close(self) -> None:
        """
        Close database connection

        For :memory: databases, closes the persistent connection.
        For file databases, this is a no-op (connections are per-method).
        """
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None
