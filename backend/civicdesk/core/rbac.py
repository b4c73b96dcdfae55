"""
Operation whitelist dependency factory.

Usage:
    @router.get("/departments")
    async def list_departments(actor: Actor = Depends(require_operation(Operation.VIEW_DEPARTMENTS))):
        ...

The role → operation table itself lives in civicdesk.engine.scope; record-level
scope checks happen inside the services.
"""
from fastapi import Depends

from civicdesk.core.security import get_current_actor
from civicdesk.engine.scope import Actor, Operation, authorize_operation


def require_operation(operation: Operation):
    """Dependency factory that enforces *operation* is whitelisted for the caller's role."""

    async def _check_operation(actor: Actor = Depends(get_current_actor)) -> Actor:
        authorize_operation(actor, operation)
        return actor

    return _check_operation
