from __future__ import annotations

from dataclasses import dataclass


NOT_AUTHORIZED = "not_authorized"
NOT_FOUND = "not_found"
NO_ORGANIZATION = "no_organization"
VALIDATION = "validation"
STORE = "store"


@dataclass(frozen=True)
class OperationError:
    """Expected failure returned (not raised) by a service operation."""

    code: str
    message: str


def not_found(message: str) -> OperationError:
    return OperationError(code=NOT_FOUND, message=message)


def invalid(message: str) -> OperationError:
    return OperationError(code=VALIDATION, message=message)
