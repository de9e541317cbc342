from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import ValidationError


@dataclass(frozen=True)
class FieldError:
    """A single violated field, addressed with a dotted/indexed path."""

    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


def _path(loc: tuple) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "body"


def field_errors(exc: ValidationError) -> List[FieldError]:
    """Flatten a pydantic error into ``FieldError``s such as ``ingredients[0].amount``."""

    errors = []
    for error in exc.errors():
        message = error["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append(FieldError(_path(tuple(error["loc"])), message))
    return errors


class RecipeError(Exception):
    """Base class for errors surfaced to API clients."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": {"kind": self.kind, "message": self.message}}


class InvalidInput(RecipeError):
    kind = "invalid_input"
    status_code = 400

    def __init__(self, errors: List[FieldError], message: Optional[str] = None) -> None:
        self.errors = list(errors)
        if message is None:
            fields = ", ".join(error.field for error in self.errors)
            message = f"Invalid recipe: {fields}" if fields else "Invalid recipe."
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["error"]["fields"] = [error.to_dict() for error in self.errors]
        return payload


class NotFound(RecipeError):
    kind = "not_found"
    status_code = 404

    def __init__(self, recipe_id: Optional[str] = None) -> None:
        self.recipe_id = recipe_id
        if recipe_id is None:
            message = "Not found."
        else:
            message = f"Recipe '{recipe_id}' does not exist."
        super().__init__(message)


class StorageError(RecipeError):
    """Backend failure or corrupt payload.

    The public message is always generic; the original exception is chained
    as ``__cause__`` and only ever reaches the logs.
    """

    kind = "storage_error"
    status_code = 500

    def __init__(self, detail: str = "") -> None:
        super().__init__("The recipe store is unavailable.")
        self.detail = detail

    def __str__(self) -> str:
        return self.detail or self.message


__all__ = ["FieldError", "field_errors", "RecipeError", "InvalidInput", "NotFound", "StorageError"]
