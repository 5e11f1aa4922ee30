"""Authorization Guard - Actor vs. step assignee check"""
from typing import Any, Optional

from ..domain.models import Actor, RoleAssignee, UserAssignee
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuthorizationGuard:
    """
    Decide whether an actor may act on a step

    Rules:
    - Role assignee: actor must hold the role
    - User assignee: actor must be that user
    - Anything else (missing actor, blank or unknown assignee) is denied
    """

    def is_authorized(self, actor: Optional[Actor], assignee: Any) -> bool:
        """
        Check actor against a step's assignee

        Args:
            actor: Current user, None for system-triggered calls
            assignee: The step's assigned_to value

        Returns:
            True if allowed
        """
        if actor is None or not actor.id:
            return False

        if isinstance(assignee, RoleAssignee):
            return self._has_role(actor, assignee.role)

        if isinstance(assignee, UserAssignee):
            return self._is_same_user(actor, assignee.user_id)

        logger.warning(
            f"Unrecognized assignee {assignee!r}, denying",
            extra={"actor_id": actor.id}
        )
        return False

    def _has_role(self, actor: Actor, role: Optional[str]) -> bool:
        if not role:
            return False
        return role in actor.roles

    def _is_same_user(self, actor: Actor, user_id: Optional[str]) -> bool:
        if not user_id:
            return False
        return actor.id == user_id
