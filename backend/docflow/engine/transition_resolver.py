"""Transition Resolver - Determine next step from an outcome"""
from typing import Optional

from ..domain.models import Step, WorkflowDefinition
from ..domain.errors import WorkflowValidationError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TransitionResolver:
    """
    Resolve the step that follows the current one

    Given current step S and outcome O:
    1. If S's branch table has an entry for O, take it (first declared wins)
    2. Otherwise take the step after S in definition order
    3. If S is the last step -> None (workflow completes)

    A branch naming a step missing from the definition is a definition
    error and raises before anything is written.
    """

    def resolve_next_step(
        self,
        definition: WorkflowDefinition,
        current_step: Step,
        outcome: Optional[str]
    ) -> Optional[str]:
        """
        Resolve the next step ID

        Args:
            definition: Workflow definition
            current_step: Step being completed
            outcome: Outcome token supplied with the action

        Returns:
            Next step ID or None if terminal
        """
        branch_target = current_step.branch_for(outcome)
        if branch_target is not None:
            if definition.get_step(branch_target) is None:
                raise WorkflowValidationError(
                    f"Step '{current_step.step_id}' branches to unknown step '{branch_target}'",
                    details={"workflow_id": definition.workflow_id, "step_id": current_step.step_id}
                )
            logger.info(
                f"Resolved branch: {current_step.step_id} -[{outcome}]-> {branch_target}",
                extra={"workflow_id": definition.workflow_id, "step_id": current_step.step_id}
            )
            return branch_target

        if current_step.next_steps and outcome is not None:
            logger.info(
                f"No branch for outcome '{outcome}' from step '{current_step.step_id}', "
                f"falling back to sequential order",
                extra={"workflow_id": definition.workflow_id, "step_id": current_step.step_id}
            )

        successor = definition.step_after(current_step.step_id)
        if successor is None:
            return None
        return successor.step_id
