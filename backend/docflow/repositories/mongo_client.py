"""MongoDB Client - Connection, Collection and Transaction Management"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, NoReturn, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, PyMongoError

from ..config.settings import settings
from ..domain.errors import ConcurrencyError, StorageError
from ..domain.interfaces import UnitOfWork
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None

WORKFLOWS_COLLECTION = "workflows"
WORKFLOW_LOGS_COLLECTION = "workflow_logs"
COUNTERS_COLLECTION = "counters"


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
            tz_aware=True,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def raise_storage_error(error: PyMongoError, operation: str) -> NoReturn:
    """Translate a driver error into a domain error"""
    if error.has_error_label("TransientTransactionError"):
        # Write conflict with a concurrent transaction
        raise ConcurrencyError(
            "Document was modified concurrently. Please refresh and try again.",
            details={"operation": operation}
        )
    logger.error(f"MongoDB {operation} failed: {error}")
    raise StorageError(f"MongoDB {operation} failed", details={"reason": str(error)})


def create_indexes() -> None:
    """Create indexes for the workflow collections

    Document collections belong to the host application and are left alone.
    """
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    workflows = db[WORKFLOWS_COLLECTION]
    workflows.create_index("workflow_id", unique=True)
    workflows.create_index("applies_to")

    workflow_logs = db[WORKFLOW_LOGS_COLLECTION]
    workflow_logs.create_index("entry_id", unique=True)
    workflow_logs.create_index([
        ("collection_id", ASCENDING),
        ("document_id", ASCENDING),
        ("timestamp", DESCENDING),
        ("sequence", DESCENDING),
    ])
    workflow_logs.create_index("correlation_id")

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except PyMongoError as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }


class MongoUnitOfWork(UnitOfWork):
    """
    Multi-document transaction over a client session

    Requires a replica set or sharded cluster; a standalone mongod rejects
    transactions.
    """

    def __init__(self, client: Optional[PyMongoClient] = None):
        self._client = client

    @property
    def client(self) -> PyMongoClient:
        if self._client is None:
            self._client = get_client()
        return self._client

    @contextmanager
    def transaction(self) -> Iterator[ClientSession]:
        try:
            session = self.client.start_session()
        except PyMongoError as e:
            raise StorageError(f"Could not open MongoDB session: {e}")

        with session:
            # start_transaction commits on clean exit and aborts on exception
            try:
                with session.start_transaction():
                    yield session
            except PyMongoError as e:
                raise_storage_error(e, "transaction")
