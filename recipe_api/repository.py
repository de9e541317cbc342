from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Callable, List, Optional

from .errors import NotFound, StorageError
from .models import Recipe
from .storage import KeyValueStore
from .validation import ensure_valid

logger = logging.getLogger(__name__)

KEY_PREFIX = "recipe:"
INDEX_KEY = "_recipe_ids"


def recipe_key(recipe_id: str) -> str:
    return f"{KEY_PREFIX}{recipe_id}"


def _new_id() -> str:
    return uuid.uuid4().hex


class RecipeRepository:
    """CRUD for recipes on top of a :class:`KeyValueStore`.

    Each recipe is a JSON blob under ``recipe:{id}``. The store cannot list
    keys, so the live ids are kept in order under a single index key. Entity
    writes always happen before the index is touched, and :meth:`list` skips
    index entries whose entity is missing.

    The index is rewritten whole on every create and delete with no
    cross-key transaction, so two concurrent creates can each drop the
    other's id. The losing recipe is still stored and readable by id, but it
    is missing from :meth:`list` until it is created again under that id.

    The repository alone assigns ``id``, ``created_at`` and ``updated_at``.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory

    def create(self, recipe: Recipe) -> Recipe:
        """Validate and store a new recipe, returning the stored copy.

        A non-empty client id is used as-is. If a recipe already exists under
        it, the record is replaced but keeps its original ``created_at``.
        """

        recipe = ensure_valid(recipe)

        now = self._now()
        recipe_id = recipe.id or self._id_factory()
        created_at = now
        if recipe.id:
            existing = self._load(recipe_key(recipe_id))
            if existing is not None:
                logger.info("Recipe %s already exists; replacing it", recipe_id)
                created_at = existing.created_at

        stored = recipe.model_copy(
            update={"id": recipe_id, "created_at": created_at, "updated_at": now}
        )
        self._store.set(recipe_key(recipe_id), stored.to_json())
        self._add_to_index(recipe_id)

        logger.info("Created recipe %s (%s)", recipe_id, stored.name)
        return stored

    def read(self, recipe_id: str) -> Recipe:
        recipe = self._load(recipe_key(recipe_id))
        if recipe is None:
            raise NotFound(recipe_id)
        return recipe

    def update(self, recipe_id: str, recipe: Recipe) -> Recipe:
        """Replace every field of an existing recipe except its identity."""

        existing = self.read(recipe_id)

        updated = ensure_valid(
            recipe.model_copy(
                update={
                    "id": recipe_id,
                    "created_at": existing.created_at,
                    "updated_at": max(self._now(), existing.updated_at),
                }
            )
        )

        self._store.set(recipe_key(recipe_id), updated.to_json())
        logger.info("Updated recipe %s", recipe_id)
        return updated

    def delete(self, recipe_id: str) -> None:
        key = recipe_key(recipe_id)
        if self._store.get(key) is None:
            raise NotFound(recipe_id)

        self._store.delete(key)
        self._remove_from_index(recipe_id)
        logger.info("Deleted recipe %s", recipe_id)

    def list(self) -> List[Recipe]:
        """Return every stored recipe in creation order."""

        recipes: List[Recipe] = []
        for recipe_id in self._load_index():
            recipe = self._load(recipe_key(recipe_id))
            if recipe is None:
                logger.warning("Index references missing recipe %s; skipping", recipe_id)
                continue
            recipes.append(recipe)
        return recipes

    def _now(self) -> int:
        return int(self._clock())

    def _load(self, key: str) -> Optional[Recipe]:
        data = self._store.get(key)
        if data is None:
            return None
        try:
            return Recipe.from_json(data)
        except ValueError as exc:
            raise StorageError(f"corrupt payload under {key!r}: {exc}") from exc

    def _load_index(self) -> List[str]:
        data = self._store.get(INDEX_KEY)
        if data is None:
            return []
        try:
            ids = json.loads(data.decode("utf-8"))
        except ValueError as exc:
            raise StorageError(f"corrupt recipe index: {exc}") from exc
        if not isinstance(ids, list) or not all(isinstance(item, str) for item in ids):
            raise StorageError("corrupt recipe index: expected a list of ids")
        return ids

    def _save_index(self, ids: List[str]) -> None:
        self._store.set(INDEX_KEY, json.dumps(ids).encode("utf-8"))

    def _add_to_index(self, recipe_id: str) -> None:
        ids = self._load_index()
        if recipe_id not in ids:
            ids.append(recipe_id)
            self._save_index(ids)

    def _remove_from_index(self, recipe_id: str) -> None:
        ids = self._load_index()
        if recipe_id in ids:
            self._save_index([item for item in ids if item != recipe_id])


__all__ = ["RecipeRepository", "INDEX_KEY", "KEY_PREFIX", "recipe_key"]
