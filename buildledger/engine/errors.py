"""
Exception hierarchy for the budget engine.

Engine functions raise these and never HTTP errors; the API layer maps
each type to a status code in one place (see buildledger.api.main).

Usage:
    from buildledger.engine.errors import NotFound, InvalidState

    raise NotFound("Budget", budget_id, org_id)
    raise InvalidState("Budget v3 is locked")
"""

from typing import Optional


class BudgetEngineError(Exception):
    """Base class for expected, typed engine failures."""

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "detail": str(self)}


class ValidationError(BudgetEngineError):
    """Malformed input: negative amount, foreign cost code, bad line list.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown (field or line index -> problem).
    """

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.details:
            data["details"] = self.details
        return data


class InvalidState(BudgetEngineError):
    """Operation attempted against a record in the wrong status."""


class InvalidTransition(BudgetEngineError):
    """Illegal status change."""

    def __init__(self, resource: str, current: str, requested: str) -> None:
        self.resource = resource
        self.current = current
        self.requested = requested
        super().__init__(f"{resource} cannot move from '{current}' to '{requested}'")


class NotFound(BudgetEngineError):
    """Record does not exist or belongs to another org.

    Both cases look the same to the caller so cross-org probing reveals nothing.
    """

    def __init__(self, resource: str, resource_id=None, org_id: Optional[int] = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.org_id = org_id
        msg = resource
        if resource_id is not None:
            msg += f" id={resource_id}"
        super().__init__(f"{msg} not found")


class ConflictError(BudgetEngineError):
    """A concurrent writer won a race or a uniqueness rule was violated."""

    def __init__(self, resource: str, detail: str) -> None:
        self.resource = resource
        super().__init__(f"{resource}: {detail}")
