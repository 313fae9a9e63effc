"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  ``core.domain.exception_handler`` maps them to HTTP
responses carrying a short machine-readable ``error`` code.

Mapping cheatsheet
------------------
┌─────────────────────┬──────────────────────┬──────┐
│ Domain Exception    │ Default error code   │ HTTP │
├─────────────────────┼──────────────────────┼──────┤
│ DomainError         │ validation-error     │ 400  │
│ PermissionDenied    │ forbidden            │ 403  │
│ NotFound            │ not-found            │ 404  │
│ Conflict            │ conflict             │ 409  │
│ InvalidTransition   │ invalid-transition   │ 409  │
└─────────────────────┴──────────────────────┴──────┘

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if (current, target) not in STATUS_UPDATE_RULES:
        raise InvalidTransition(current=current, target=target)

Any exception accepts ``code=`` to override the default short code, e.g.
``PermissionDenied("Account Deactivated by the admin", code="inactive-account")``.
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    status_code = 400
    default_code = "validation-error"

    def __init__(
        self,
        message: str = "A business rule was violated.",
        *,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        super().__init__(self.message)


class PermissionDenied(DomainError):
    """
    The authenticated user does not have the required role, department or
    ownership for this operation.

    Maps to HTTP 403.
    """

    status_code = 403
    default_code = "forbidden"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action.",
        *,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code=code)


class NotFound(DomainError):
    """
    The requested resource does not exist (or is not visible to the
    requesting user given their role scope).

    Maps to HTTP 404.
    """

    status_code = 404
    default_code = "not-found"

    def __init__(
        self,
        message: str = "The requested resource was not found.",
        *,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code=code)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Typical usage: feedback already submitted, duplicate creation attempt.
    Maps to HTTP 409.
    """

    status_code = 409
    default_code = "conflict"

    def __init__(
        self,
        message: str = "The operation conflicts with the current state.",
        *,
        code: str | None = None,
    ) -> None:
        super().__init__(message, code=code)


class InvalidTransition(Conflict):
    """
    A state-machine transition that is not allowed from the current status.

    Inherits from ``Conflict`` because an invalid transition IS a conflict
    with the resource's current state.  Maps to HTTP 409.

    Example::

        raise InvalidTransition(
            current="Resolved",
            target="In Progress",
            reason="Resolved complaints can only be closed.",
        )
    """

    default_code = "invalid-transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
        code: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            message = " ".join(parts) + "."
            if reason:
                message = f"{message} {reason}"
        super().__init__(message, code=code)
        self.current = current
        self.target = target
        self.reason = reason
