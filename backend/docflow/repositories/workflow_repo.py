"""Workflow Repository - Data access for workflow definitions"""
from typing import Any, Dict, List
from pymongo.collection import Collection
from pymongo import ASCENDING
from pymongo.errors import PyMongoError
from pydantic import ValidationError

from .mongo_client import get_collection, raise_storage_error, WORKFLOWS_COLLECTION
from ..domain.models import WorkflowDefinition
from ..domain.errors import WorkflowNotFoundError, WorkflowValidationError
from ..domain.interfaces import WorkflowDefinitionStore
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MongoWorkflowRepository(WorkflowDefinitionStore):
    """Repository for workflow definitions"""

    def __init__(self):
        self._workflows: Collection = get_collection(WORKFLOWS_COLLECTION)

    def find_by_id(self, workflow_id: str) -> WorkflowDefinition:
        """Get workflow by ID or raise error"""
        try:
            doc = self._workflows.find_one({"workflow_id": workflow_id})
        except PyMongoError as e:
            raise_storage_error(e, "find_workflow")

        if doc is None:
            raise WorkflowNotFoundError(
                f"Workflow {workflow_id} not found",
                details={"workflow_id": workflow_id}
            )
        return self._to_definition(doc)

    def find_applicable(self, collection_id: str) -> List[WorkflowDefinition]:
        """Workflows that apply to a collection, oldest first"""
        return self._find({"applies_to": collection_id})

    def list_all(self) -> List[WorkflowDefinition]:
        return self._find({})

    def save(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Insert or replace a workflow definition"""
        if definition.created_at is None:
            definition = definition.model_copy(update={"created_at": utc_now()})

        doc = definition.model_dump()
        doc["_id"] = definition.workflow_id
        try:
            self._workflows.replace_one({"_id": definition.workflow_id}, doc, upsert=True)
        except PyMongoError as e:
            raise_storage_error(e, "save_workflow")

        logger.info(
            f"Saved workflow: {definition.workflow_id}",
            extra={"workflow_id": definition.workflow_id}
        )
        return definition

    def _find(self, query: Dict[str, Any]) -> List[WorkflowDefinition]:
        try:
            cursor = self._workflows.find(query).sort("created_at", ASCENDING)
            docs = list(cursor)
        except PyMongoError as e:
            raise_storage_error(e, "find_workflows")
        return [self._to_definition(doc) for doc in docs]

    def _to_definition(self, doc: Dict[str, Any]) -> WorkflowDefinition:
        doc.pop("_id", None)
        try:
            return WorkflowDefinition.model_validate(doc)
        except ValidationError as e:
            workflow_id = doc.get("workflow_id")
            logger.error(
                f"Invalid workflow definition {workflow_id}: {str(e)[:500]}",
                extra={"workflow_id": workflow_id}
            )
            raise WorkflowValidationError(
                f"Workflow {workflow_id} has an invalid definition",
                details={
                    "workflow_id": workflow_id,
                    "errors": e.errors(include_url=False, include_context=False, include_input=False),
                }
            )
