"""Audit Repository - Data access for workflow logs"""
from typing import Any, List
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from .mongo_client import (
    get_collection, raise_storage_error, WORKFLOW_LOGS_COLLECTION, COUNTERS_COLLECTION
)
from ..domain.models import AuditEntry
from ..domain.interfaces import AuditLog
from ..utils.time import ensure_utc
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoAuditRepository(AuditLog):
    """Repository for workflow log entries (append-only)

    update() and delete() are inherited and always raise ImmutableViolation.
    """

    def __init__(self):
        self._logs: Collection = get_collection(WORKFLOW_LOGS_COLLECTION)
        self._counters: Collection = get_collection(COUNTERS_COLLECTION)

    def append(self, entry: AuditEntry, session: Any = None) -> str:
        """Append an entry inside the caller's transaction"""
        entry = entry.model_copy(update={"sequence": self._next_sequence()})
        doc = entry.model_dump()
        doc["_id"] = entry.entry_id

        try:
            self._logs.insert_one(doc, session=session)
        except PyMongoError as e:
            raise_storage_error(e, "append_log")
        return entry.entry_id

    def query(self, document_id: str, collection_id: str) -> List[AuditEntry]:
        """Entries for a document, newest first"""
        try:
            cursor = self._logs.find(
                {"document_id": document_id, "collection_id": collection_id}
            ).sort([("timestamp", DESCENDING), ("sequence", DESCENDING)])
            docs = list(cursor)
        except PyMongoError as e:
            raise_storage_error(e, "query_logs")

        entries = []
        for doc in docs:
            doc.pop("_id", None)
            doc["timestamp"] = ensure_utc(doc["timestamp"])
            entries.append(AuditEntry.model_validate(doc))
        return entries

    def _next_sequence(self) -> int:
        # Outside the transaction; a rolled-back append only leaves a gap
        try:
            counter = self._counters.find_one_and_update(
                {"_id": WORKFLOW_LOGS_COLLECTION},
                {"$inc": {"seq": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER
            )
        except PyMongoError as e:
            raise_storage_error(e, "next_sequence")
        return counter["seq"]
