import logging
import os
import threading
import time
from typing import Optional

from dotenv import load_dotenv
from neo4j import GraphDatabase
from neo4j.exceptions import (
    AuthError,
    ConfigurationError,
    DriverError,
    Neo4jError,
    ServiceUnavailable,
    SessionExpired,
)

from db_result_helpers import normalize_record

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env"))

logger = logging.getLogger(__name__)


class GraphConfigurationError(ConnectionError):
    """Neo4j connection parameters are missing. Fatal, never degraded to mock data."""


class GraphQueryError(Exception):
    """A query against the graph store failed."""


class GraphUnavailableError(GraphQueryError):
    """The graph store cannot be reached (or rejected our credentials)."""


class GraphConnection:
    """Process-wide handle to the Neo4j driver.

    The driver is created lazily on first use and shared by every request;
    the driver's own connection pool makes it safe for concurrent callers.
    Each query opens its own session and releases it before returning.
    """

    def __init__(self, uri: Optional[str] = None, user: Optional[str] = None,
                 password: Optional[str] = None, database: Optional[str] = None):
        self.uri = uri or os.getenv("NEO4J_URI")
        self.user = user or os.getenv("NEO4J_USER")
        self.password = password or os.getenv("NEO4J_PASSWORD")
        self.database = database or os.getenv("NEO4J_DATABASE", "neo4j")
        self.driver = None
        self._lock = threading.Lock()

    def _missing_settings(self) -> list[str]:
        settings = {"NEO4J_URI": self.uri, "NEO4J_USER": self.user, "NEO4J_PASSWORD": self.password}
        return [name for name, value in settings.items() if not value]

    def connect(self):
        if self.driver is None:
            with self._lock:
                if self.driver is None:
                    missing = self._missing_settings()
                    if missing:
                        raise GraphConfigurationError(
                            f"Missing Neo4j environment variables: {', '.join(missing)}. "
                            "Please set NEO4J_URI, NEO4J_USER, and NEO4J_PASSWORD."
                        )
                    try:
                        self.driver = GraphDatabase.driver(
                            self.uri,
                            auth=(self.user, self.password),
                            max_connection_lifetime=3600,
                            max_connection_pool_size=50,
                            connection_acquisition_timeout=30,
                            keep_alive=True,
                        )
                    except (ValueError, ConfigurationError) as e:
                        # Unsupported URI scheme or malformed address
                        raise GraphConfigurationError(f"Invalid Neo4j connection settings: {e}") from e
        return self.driver

    def close(self):
        """Close the driver. The next query creates a fresh one."""
        with self._lock:
            if self.driver is not None:
                self.driver.close()
                self.driver = None

    def warmup(self):
        """Pre-connect on server start. Missing configuration is fatal; an unreachable store is not."""
        t = time.time()
        self.connect()
        try:
            self.verify_connection()
            logger.info(f"Neo4j connection warmed up in {time.time() - t:.2f}s")
        except GraphQueryError as e:
            logger.warning(f"Neo4j warmup failed: {e}")

    def run_query(self, cypher: str, parameters: Optional[dict] = None) -> list[dict]:
        """Run a read query with bound parameters and return normalized rows."""
        driver = self.connect()
        try:
            with driver.session(database=self.database) as session:
                result = session.run(cypher, parameters or {})
                return [normalize_record(record) for record in result]
        except (ServiceUnavailable, SessionExpired, AuthError) as e:
            raise GraphUnavailableError(str(e)) from e
        except (Neo4jError, DriverError) as e:
            raise GraphQueryError(str(e)) from e

    def run_write(self, cypher: str, parameters: Optional[dict] = None) -> None:
        """Run a write statement in a managed transaction. Used by the importer only."""
        driver = self.connect()

        def _work(tx):
            tx.run(cypher, parameters or {}).consume()

        try:
            with driver.session(database=self.database) as session:
                session.execute_write(_work)
        except (ServiceUnavailable, SessionExpired, AuthError) as e:
            raise GraphUnavailableError(str(e)) from e
        except (Neo4jError, DriverError) as e:
            raise GraphQueryError(str(e)) from e

    def verify_connection(self) -> bool:
        rows = self.run_query("RETURN 1 AS test")
        return bool(rows) and rows[0].get("test") == 1

    def get_node_count(self) -> int:
        rows = self.run_query("MATCH (n) RETURN count(n) AS count")
        return rows[0]["count"] if rows else 0

    def get_relationship_count(self) -> int:
        rows = self.run_query("MATCH ()-[r]->() RETURN count(r) AS count")
        return rows[0]["count"] if rows else 0


db = GraphConnection()


def execute_query(query_text: str, parameters: Optional[dict] = None) -> list[dict]:
    """Raw pass-through execution for externally generated queries.

    The query text is run as given; callers supply values through
    ``parameters`` only.
    """
    return db.run_query(query_text, parameters)
