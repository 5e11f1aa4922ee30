"""
Workflow Routes

- Trigger a workflow on a document
- Status and history of a document
- Act on the current step
- Document-changed and timer hooks
"""

from fastapi import APIRouter, Depends, Query

from ..deps import get_current_actor_dep, get_correlation_id_dep, get_workflow_service
from ...domain.models import Actor
from ...services.workflow_service import WorkflowService
from ...utils.logger import get_logger
from .schemas import (
    TriggerRequest, ActionRequest, ReevaluateRequest, EscalateRequest,
    TransitionResponse, StatusResponse, EscalateResponse
)

logger = get_logger(__name__)
router = APIRouter(dependencies=[Depends(get_correlation_id_dep)])


@router.post("/trigger", response_model=TransitionResponse)
def trigger_workflow(
    request: TriggerRequest,
    actor: Actor = Depends(get_current_actor_dep),
    service: WorkflowService = Depends(get_workflow_service)
):
    """
    Start a workflow on a document.

    Repeating the call on a running document changes nothing.
    """
    result = service.trigger(
        collection_id=request.collection_id,
        document_id=request.document_id,
        actor=actor,
        workflow_id=request.workflow_id
    )
    return TransitionResponse(**result)


@router.get("/status/{document_id}", response_model=StatusResponse)
def get_workflow_status(
    document_id: str,
    collection_id: str = Query(..., min_length=1),
    actor: Actor = Depends(get_current_actor_dep),
    service: WorkflowService = Depends(get_workflow_service)
):
    """Current step, status and workflow log of a document."""
    return StatusResponse(**service.status(collection_id, document_id))


@router.post("/action", response_model=TransitionResponse)
def perform_action(
    request: ActionRequest,
    actor: Actor = Depends(get_current_actor_dep),
    service: WorkflowService = Depends(get_workflow_service)
):
    """
    Act on the document's current step.

    Only the step's assignee may act. The outcome selects a branch;
    without a matching branch the next step in order follows.
    """
    result = service.action(
        collection_id=request.collection_id,
        document_id=request.document_id,
        step_id=request.step_id,
        action=request.action,
        actor=actor,
        outcome=request.outcome,
        comment=request.comment,
        workflow_id=request.workflow_id
    )
    return TransitionResponse(**result)


@router.post("/reevaluate", response_model=TransitionResponse)
def reevaluate_document(
    request: ReevaluateRequest,
    actor: Actor = Depends(get_current_actor_dep),
    service: WorkflowService = Depends(get_workflow_service)
):
    """Document-changed hook; may be delivered more than once."""
    result = service.reevaluate_document(request.collection_id, request.document_id)
    return TransitionResponse(**result)


@router.post("/escalate", response_model=EscalateResponse)
def escalate_overdue(
    request: EscalateRequest,
    actor: Actor = Depends(get_current_actor_dep),
    service: WorkflowService = Depends(get_workflow_service)
):
    """Timer hook: escalate steps that are past their SLA."""
    logger.info(f"Escalation sweep requested by {actor.id}", extra={"actor_id": actor.id})
    return EscalateResponse(escalated=service.escalate_overdue(now=request.now))
