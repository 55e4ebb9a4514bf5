"""
Trust Score Database Layer

Neo4j connection management and schema initialization.
"""
from contextlib import contextmanager

from neo4j import GraphDatabase
import structlog

from app.config import settings

logger = structlog.get_logger()

_driver = None


def get_driver():
    """Get or create Neo4j driver (singleton)."""
    global _driver
    if _driver is None:
        _driver = GraphDatabase.driver(
            settings.NEO4J_URI,
            auth=(settings.NEO4J_USER, settings.NEO4J_PASSWORD),
        )
        logger.info("neo4j_connected", uri=settings.NEO4J_URI)
    return _driver


@contextmanager
def get_session():
    """Get a Neo4j session (context manager)."""
    driver = get_driver()
    session = driver.session()
    try:
        yield session
    finally:
        session.close()


def init_schema():
    """Initialize Neo4j schema constraints and indexes for trust scoring."""
    constraints = [
        "CREATE CONSTRAINT IF NOT EXISTS FOR (p:Profile) REQUIRE p.id IS UNIQUE",
        "CREATE CONSTRAINT IF NOT EXISTS FOR (v:Verification) REQUIRE v.id IS UNIQUE",
        "CREATE CONSTRAINT IF NOT EXISTS FOR (e:Endorsement) REQUIRE e.id IS UNIQUE",
        "CREATE CONSTRAINT IF NOT EXISTS FOR (t:TrustScore) REQUIRE t.profile_id IS UNIQUE",
    ]

    indexes = [
        "CREATE INDEX IF NOT EXISTS FOR (v:Verification) ON (v.profile_id)",
        "CREATE INDEX IF NOT EXISTS FOR (e:Endorsement) ON (e.endorsed_id)",
        "CREATE INDEX IF NOT EXISTS FOR (t:TrustScore) ON (t.updated_at)",
        "CREATE INDEX IF NOT EXISTS FOR (h:TrustScoreHistory) ON (h.profile_id)",
        "CREATE INDEX IF NOT EXISTS FOR (h:TrustScoreHistory) ON (h.timestamp)",
    ]

    with get_session() as session:
        for query in constraints + indexes:
            try:
                session.run(query)
            except Exception as e:
                logger.warning("schema_init_warning", query=query[:60], error=str(e))

    logger.info("schema_initialized", constraints=len(constraints), indexes=len(indexes))


def close():
    """Close the Neo4j driver."""
    global _driver
    if _driver:
        _driver.close()
        _driver = None
        logger.info("neo4j_disconnected")
