from __future__ import annotations

from typing import List

from pydantic import ValidationError

from .errors import FieldError, InvalidInput, field_errors
from .models import Recipe


def validate_recipe(recipe: Recipe) -> List[FieldError]:
    """Return every rule ``recipe`` violates; an empty list means valid.

    The model is checked again from scratch, so instances built with
    ``model_construct`` or edited after parsing are covered too.
    """

    try:
        Recipe.model_validate(recipe)
    except ValidationError as exc:
        return field_errors(exc)
    return []


def ensure_valid(recipe: Recipe) -> Recipe:
    """Return a validated copy of ``recipe`` or raise :class:`InvalidInput`
    listing every violation.
    """

    try:
        return Recipe.model_validate(recipe)
    except ValidationError as exc:
        raise InvalidInput(field_errors(exc)) from exc


__all__ = ["validate_recipe", "ensure_valid"]
