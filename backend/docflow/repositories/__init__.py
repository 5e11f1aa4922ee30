"""Repository modules - Data access layer"""
from .mongo_client import get_database, get_collection, MongoUnitOfWork
from .subject_repo import MongoSubjectRepository
from .workflow_repo import MongoWorkflowRepository
from .audit_repo import MongoAuditRepository
from .memory import (
    InMemoryStorage,
    InMemorySubjectStore,
    InMemoryWorkflowStore,
    InMemoryAuditLog,
    InMemoryUnitOfWork,
)

__all__ = [
    "get_database",
    "get_collection",
    "MongoUnitOfWork",
    "MongoSubjectRepository",
    "MongoWorkflowRepository",
    "MongoAuditRepository",
    "InMemoryStorage",
    "InMemorySubjectStore",
    "InMemoryWorkflowStore",
    "InMemoryAuditLog",
    "InMemoryUnitOfWork",
]
