"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, ConfigDict, model_validator

from .enums import SubjectStatus, StepType, TERMINAL_STATUSES
from ..utils.idgen import generate_workflow_id


# ============================================================================
# Actor
# ============================================================================

class Actor(BaseModel):
    """Authenticated user performing an operation"""
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1, description="User ID")
    email: Optional[str] = Field(None, description="User email")
    display_name: Optional[str] = Field(None, description="User display name")
    roles: List[str] = Field(default_factory=list, description="Assigned roles")


# ============================================================================
# Assignee (tagged variant)
# ============================================================================

class RoleAssignee(BaseModel):
    """Step is assigned to everyone holding a role"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    assignee_type: Literal["role"] = "role"
    role: str = Field(..., min_length=1)


class UserAssignee(BaseModel):
    """Step is assigned to one specific user"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    assignee_type: Literal["user"] = "user"
    user_id: str = Field(..., min_length=1)


Assignee = Annotated[Union[RoleAssignee, UserAssignee], Field(discriminator="assignee_type")]


# ============================================================================
# Condition & Branch
# ============================================================================

class Condition(BaseModel):
    """Step-entry condition over a document field"""
    model_config = ConfigDict(extra="forbid")

    field: str = Field(..., min_length=1, description="Document field (dot path allowed)")
    # Kept as a plain token so unknown operators load and then fail closed
    operator: str = Field(..., description="equals, notEquals, greaterThan, lessThan, contains")
    value: Any = Field(None, description="Literal to compare against")


class Branch(BaseModel):
    """Outcome -> next step entry of a step's branch table"""
    model_config = ConfigDict(extra="forbid")

    outcome: str = Field(..., min_length=1, description="e.g. approved, rejected, completed")
    next_step_id: str = Field(..., min_length=1)


# ============================================================================
# Workflow Definition
# ============================================================================

class Step(BaseModel):
    """A named stage of a workflow"""
    model_config = ConfigDict(extra="forbid")

    step_id: str = Field(..., min_length=1, description="Unique within the definition")
    name: str = Field(..., min_length=1)
    step_type: StepType
    assigned_to: Assignee
    conditions: List[Condition] = Field(default_factory=list)
    sla_hours: Optional[float] = Field(None, gt=0, description="Hours before escalation")
    next_steps: List[Branch] = Field(default_factory=list, description="Branch table")

    def branch_for(self, outcome: Optional[str]) -> Optional[str]:
        """Next step ID for an outcome; the first declared match wins"""
        if outcome is None:
            return None
        for branch in self.next_steps:
            if branch.outcome == outcome:
                return branch.next_step_id
        return None


class WorkflowDefinition(BaseModel):
    """Ordered steps plus per-step branch tables"""
    model_config = ConfigDict(extra="ignore")

    workflow_id: str = Field(default_factory=generate_workflow_id)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    applies_to: List[str] = Field(default_factory=list, description="Collection IDs")
    steps: List[Step] = Field(default_factory=list)
    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_unique_step_ids(self) -> "WorkflowDefinition":
        seen = set()
        for step in self.steps:
            if step.step_id in seen:
                raise ValueError(f"Duplicate step_id '{step.step_id}'")
            seen.add(step.step_id)
        return self

    def get_step(self, step_id: Optional[str]) -> Optional[Step]:
        """Find step by ID"""
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    def first_step(self) -> Optional[Step]:
        return self.steps[0] if self.steps else None

    def step_after(self, step_id: str) -> Optional[Step]:
        """Sequential successor of a step, or None for the last one"""
        for index, step in enumerate(self.steps):
            if step.step_id == step_id:
                if index + 1 < len(self.steps):
                    return self.steps[index + 1]
                return None
        return None


# ============================================================================
# Subject (document workflow state)
# ============================================================================

class Subject(BaseModel):
    """A document's workflow fields plus its read-only data"""
    model_config = ConfigDict(extra="forbid")

    document_id: str
    collection_id: str
    workflow_id: Optional[str] = None
    current_step_id: Optional[str] = None
    status: SubjectStatus = Field(default=SubjectStatus.NOT_STARTED)
    step_entered_at: Optional[datetime] = None
    version: int = Field(default=0, ge=0, description="Optimistic concurrency version")
    data: Dict[str, Any] = Field(default_factory=dict, description="Other document fields")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# ============================================================================
# Audit Entry
# ============================================================================

class AuditEntry(BaseModel):
    """Workflow log entry (append-only, never mutated)"""
    model_config = ConfigDict(extra="forbid", frozen=True)

    entry_id: str
    workflow_id: str
    document_id: str
    collection_id: str
    step_id: str
    action: str
    actor_id: Optional[str] = Field(None, description="None means system-triggered")
    timestamp: datetime
    outcome: Optional[str] = None
    comment: Optional[str] = None
    sequence: int = Field(default=0, description="Insertion order, assigned by the log")
    correlation_id: Optional[str] = None
