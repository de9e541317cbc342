from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from .errors import InvalidInput, field_errors

SERVER_FIELDS = ("created_at", "updated_at")


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class _Model(BaseModel):
    # Re-check nested instances too, so edited or hand-built models cannot
    # slip past validation.
    model_config = ConfigDict(revalidate_instances="always")


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


class Ingredient(_Model):
    name: StrictStr
    amount: float = Field(strict=True, ge=0, allow_inf_nan=False)
    unit: StrictStr = ""
    optional: StrictBool = False
    notes: Optional[StrictStr] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("amount", mode="before")
    @classmethod
    def amount_fits_float(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                float(value)
            except OverflowError:
                raise ValueError("must be a finite number") from None
        return value


class Instruction(_Model):
    """A preparation step. ``order`` only drives display; gaps and repeats are fine."""

    order: StrictInt = Field(ge=1)
    instruction: StrictStr
    duration_mins: Optional[Annotated[StrictInt, Field(ge=0)]] = None

    @field_validator("instruction")
    @classmethod
    def instruction_not_blank(cls, value: str) -> str:
        return _not_blank(value)


class Recipe(_Model):
    """Domain object representing a stored recipe.

    ``tags`` and ``dietary_info`` are sets on the wire; they are kept as lists
    without duplicates so the submitted order survives for display.
    """

    id: StrictStr = ""
    name: StrictStr
    description: Optional[StrictStr] = None
    ingredients: List[Ingredient] = Field(min_length=1)
    instructions: List[Instruction] = Field(min_length=1)
    servings: StrictInt = Field(gt=0)
    prep_time_mins: StrictInt = Field(default=0, ge=0)
    cook_time_mins: StrictInt = Field(default=0, ge=0)
    difficulty: Difficulty
    tags: List[StrictStr] = Field(default_factory=list)
    dietary_info: List[StrictStr] = Field(default_factory=list)
    created_at: StrictInt = 0
    updated_at: StrictInt = 0

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        return _not_blank(value)

    @field_validator("id", mode="before")
    @classmethod
    def null_id(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("id")
    @classmethod
    def addressable_id(cls, value: str) -> str:
        if "/" in value:
            raise ValueError("must not contain '/'")
        return value

    @field_validator("tags", "dietary_info", mode="before")
    @classmethod
    def null_set(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("tags", "dietary_info")
    @classmethod
    def dedupe(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_dict(cls, payload: Any) -> "Recipe":
        """Parse a client payload, raising :class:`InvalidInput` with every
        violated field. Timestamps in the payload are ignored.
        """

        if isinstance(payload, dict):
            payload = {key: value for key, value in payload.items() if key not in SERVER_FIELDS}
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise InvalidInput(field_errors(exc)) from exc

    @classmethod
    def from_json(cls, data: bytes) -> "Recipe":
        """Decode a stored payload, timestamps included.

        Raises :class:`pydantic.ValidationError` (a :class:`ValueError`) when
        the payload is not a recipe.
        """

        return cls.model_validate_json(data)


__all__ = ["Difficulty", "Ingredient", "Instruction", "Recipe"]
