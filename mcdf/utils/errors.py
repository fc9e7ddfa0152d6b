"""
Custom Error Classes
Typed exceptions raised by the fund services.

Each error carries an HTTP-style status_code and a human readable detail so a
transport layer can surface it without parsing messages.
"""

from typing import Any, Optional


class FundError(Exception):
    """Base exception for all welfare fund errors."""

    status_code: int = 400
    default_detail: str = "Operation failed"

    def __init__(self, detail: Optional[str] = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "detail": self.detail}


class NotFoundError(FundError):
    """Raised when a referenced entity does not exist."""

    status_code = 404
    default_detail = "Resource not found"

    def __init__(self, entity: str, entity_id: Any) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ValidationFailure(FundError):
    """Raised for malformed or out-of-range input, before anything is written."""

    status_code = 422
    default_detail = "Validation error"

    def __init__(self, detail: Optional[str] = None, errors: Optional[list[str]] = None) -> None:
        super().__init__(detail)
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class InvalidStateTransition(FundError):
    """Raised when an action is not legal from the entity's current status."""

    status_code = 409
    default_detail = "Invalid state transition"

    def __init__(
        self,
        detail: str,
        entity: Optional[str] = None,
        current_status: Optional[str] = None,
        action: Optional[str] = None,
    ) -> None:
        super().__init__(detail)
        self.entity = entity
        self.current_status = current_status
        self.action = action


class EligibilityFailure(FundError):
    """Raised when an eligibility gate blocks an operation; lists every unmet rule."""

    status_code = 422
    default_detail = "Eligibility requirements not met"

    def __init__(self, prefix: str, issues: list[str]) -> None:
        self.issues = list(issues)
        super().__init__(f"{prefix}: {'; '.join(self.issues)}" if self.issues else prefix)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["issues"] = self.issues
        return data


class ConflictError(FundError):
    """Raised when an operation would violate a uniqueness rule."""

    status_code = 409
    default_detail = "Resource conflict"


class LedgerImmutableError(FundError):
    """Raised when something tries to modify or remove a posted ledger entry."""

    status_code = 409
    default_detail = "Ledger entries are append-only; post a compensating entry instead"
