"""Subject Repository - Workflow fields stored on host documents"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from .mongo_client import get_collection, raise_storage_error
from ..domain.models import Subject
from ..domain.enums import SubjectStatus
from ..domain.errors import ConcurrencyError, DocumentNotFoundError
from ..domain.interfaces import SubjectStore
from ..utils.time import ensure_utc, parse_iso
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Subject attribute -> document field
FIELD_MAP = {
    "status": "workflow_status",
    "workflow_id": "current_workflow",
    "current_step_id": "current_step",
    "step_entered_at": "step_entered_at",
    "version": "workflow_version",
}


class MongoSubjectRepository(SubjectStore):
    """
    Reads and writes the workflow fields of documents in any collection

    The collection_id is the MongoDB collection name. Everything on the
    document other than the workflow fields is exposed as Subject.data and
    never written here.
    """

    def _collection(self, collection_id: str) -> Collection:
        return get_collection(collection_id)

    def _id_filter(self, document_id: str) -> Dict[str, Any]:
        if ObjectId.is_valid(document_id):
            return {"_id": {"$in": [document_id, ObjectId(document_id)]}}
        return {"_id": document_id}

    def read(self, collection_id: str, document_id: str) -> Subject:
        try:
            doc = self._collection(collection_id).find_one(self._id_filter(document_id))
        except PyMongoError as e:
            raise_storage_error(e, "read")

        if doc is None:
            raise DocumentNotFoundError(
                f"Document {document_id} not found in {collection_id}",
                details={"collection_id": collection_id, "document_id": document_id}
            )
        return self._to_subject(collection_id, document_id, doc)

    def write(
        self,
        collection_id: str,
        document_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int],
        session: Any = None
    ) -> Subject:
        """Update workflow fields with optimistic concurrency"""
        updates: Dict[str, Any] = {}
        for key, value in patch.items():
            if key not in FIELD_MAP or key == "version":
                raise ValueError(f"'{key}' is not a writable workflow field")
            if isinstance(value, Enum):
                value = value.value
            updates[FIELD_MAP[key]] = value

        filter_query = self._id_filter(document_id)
        update: Dict[str, Any] = {"$set": updates}
        if expected_version is not None:
            # Documents that never entered a workflow carry no version field
            filter_query["workflow_version"] = (
                expected_version if expected_version > 0 else {"$in": [0, None]}
            )
            updates["workflow_version"] = expected_version + 1
        else:
            update["$inc"] = {"workflow_version": 1}

        collection = self._collection(collection_id)
        exists = None
        try:
            result = collection.find_one_and_update(
                filter_query,
                update,
                return_document=ReturnDocument.AFTER,
                session=session
            )
            if result is None:
                exists = collection.find_one(self._id_filter(document_id), session=session)
        except PyMongoError as e:
            raise_storage_error(e, "write")

        if result is None:
            if exists is not None and expected_version is not None:
                raise ConcurrencyError(
                    f"Document {document_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise DocumentNotFoundError(
                f"Document {document_id} not found in {collection_id}",
                details={"collection_id": collection_id, "document_id": document_id}
            )

        logger.info(
            f"Updated workflow fields: {document_id}",
            extra={"document_id": document_id, "collection_id": collection_id}
        )
        return self._to_subject(collection_id, document_id, result)

    def find_in_progress(self, collection_id: str) -> List[Subject]:
        try:
            cursor = self._collection(collection_id).find(
                {"workflow_status": SubjectStatus.IN_PROGRESS.value}
            )
            return [self._to_subject(collection_id, str(doc["_id"]), doc) for doc in cursor]
        except PyMongoError as e:
            raise_storage_error(e, "find_in_progress")

    def _to_subject(self, collection_id: str, document_id: str, doc: Dict[str, Any]) -> Subject:
        data = dict(doc)
        data.pop("_id", None)
        fields = {attr: data.pop(field, None) for attr, field in FIELD_MAP.items()}

        entered_at = fields["step_entered_at"]
        if isinstance(entered_at, str):
            entered_at = parse_iso(entered_at)
        elif isinstance(entered_at, datetime):
            entered_at = ensure_utc(entered_at)

        return Subject(
            document_id=document_id,
            collection_id=collection_id,
            workflow_id=fields["workflow_id"],
            current_step_id=fields["current_step_id"],
            status=fields["status"] or SubjectStatus.NOT_STARTED,
            step_entered_at=entered_at,
            version=fields["version"] or 0,
            data=data
        )
