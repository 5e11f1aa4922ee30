"""
Workflow Schemas

Request and response models for workflow API endpoints.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ...domain.models import AuditEntry


# =============================================================================
# Requests
# =============================================================================

class DocumentRef(BaseModel):
    """Identifies a document inside a collection"""
    collection_id: str = Field(..., min_length=1)
    document_id: str = Field(..., min_length=1)


class TriggerRequest(DocumentRef):
    """Request to start a workflow on a document"""
    workflow_id: Optional[str] = Field(
        None, description="Defaults to the first workflow that applies to the collection"
    )


class ActionRequest(DocumentRef):
    """Request to act on the document's current step"""
    step_id: str = Field(..., min_length=1)
    action: str = Field(..., min_length=1, description="e.g. approved, rejected, commented")
    outcome: Optional[str] = Field(None, description="Selects a branch of the step")
    comment: Optional[str] = Field(None, max_length=2000)
    workflow_id: Optional[str] = None


class ReevaluateRequest(DocumentRef):
    """Document-changed notification"""


class EscalateRequest(BaseModel):
    """External timer tick"""
    now: Optional[datetime] = Field(None, description="Evaluation time, defaults to the server clock")


# =============================================================================
# Responses
# =============================================================================

class TransitionResponse(BaseModel):
    """Workflow fields of a document after an operation"""
    document_id: str
    collection_id: str
    status: str
    workflow_id: Optional[str] = None
    current_step_id: Optional[str] = None
    next_step_id: Optional[str] = None


class WorkflowRef(BaseModel):
    workflow_id: str
    name: str


class CurrentStepInfo(BaseModel):
    step_id: str
    name: str
    step_type: str
    assigned_to: Dict[str, Any]
    sla_hours: Optional[float] = None
    step_entered_at: Optional[datetime] = None
    sla_breached: bool = False


class StatusResponse(BaseModel):
    """Workflow state plus history, newest first"""
    document_id: str
    collection_id: str
    status: str
    workflow: Optional[WorkflowRef] = None
    current_step: Optional[CurrentStepInfo] = None
    history: List[AuditEntry] = Field(default_factory=list)


class EscalateResponse(BaseModel):
    escalated: int
