import logging
import os
from typing import Any, Optional, Tuple

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import BadRequest, HTTPException

from .errors import FieldError, InvalidInput, NotFound, RecipeError, StorageError
from .models import Recipe
from .repository import RecipeRepository
from .storage import InMemoryKeyValueStore, KeyValueStore

try:
    from .gcp_storage import CloudStorageKeyValueStore, FirestoreKeyValueStore
except ImportError:  # pragma: no cover - allows running tests without optional deps
    CloudStorageKeyValueStore = None  # type: ignore[assignment,misc]
    FirestoreKeyValueStore = None  # type: ignore[assignment,misc]

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024 * 1024


def create_app(repository: Optional[RecipeRepository] = None) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    repository:
        Optional recipe repository. When ``None`` the application builds one
        over the key-value store selected by the ``RECIPE_STORE`` environment
        variable (``firestore``, ``gcs`` or ``memory``).
    """

    app = Flask(__name__)
    app.config.setdefault("MAX_CONTENT_LENGTH", MAX_BODY_BYTES)
    app.json.sort_keys = False  # type: ignore[attr-defined]

    if repository is None:
        repository = RecipeRepository(store_from_env())
    app.config["RECIPE_REPOSITORY"] = repository

    @app.before_request
    def log_request() -> None:
        logger.info("Request: %s %s", request.method, request.path)

    @app.get("/health")
    def health() -> Response:
        return jsonify(status="ok")

    @app.get("/api/recipes")
    def list_recipes() -> Response:
        recipes = _repository(app).list()
        return jsonify([recipe.to_dict() for recipe in recipes])

    @app.get("/api/recipes/<recipe_id>")
    def get_recipe(recipe_id: str) -> Response:
        recipe = _repository(app).read(recipe_id)
        return jsonify(recipe.to_dict())

    @app.post("/api/recipes")
    def create_recipe() -> Tuple[Response, int]:
        recipe = _repository(app).create(Recipe.from_dict(_json_from_request()))
        return jsonify(recipe.to_dict()), 201

    @app.put("/api/recipes/<recipe_id>")
    def update_recipe(recipe_id: str) -> Response:
        repository = _repository(app)
        payload = _json_from_request()
        # A missing recipe is reported before any problem with the body.
        repository.read(recipe_id)
        recipe = repository.update(recipe_id, Recipe.from_dict(payload))
        return jsonify(recipe.to_dict())

    @app.delete("/api/recipes/<recipe_id>")
    def delete_recipe(recipe_id: str) -> Response:
        _repository(app).delete(recipe_id)
        return jsonify(status="deleted")

    @app.errorhandler(RecipeError)
    def handle_recipe_error(exc: RecipeError) -> Tuple[Response, int]:
        if isinstance(exc, StorageError):
            logger.error("Storage failure on %s %s: %s", request.method, request.path, exc)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException) -> Tuple[Response, int]:
        # Unknown routes and unsupported methods on known routes look alike.
        if exc.code in (404, 405):
            error = NotFound()
            return jsonify(error.to_dict()), error.status_code

        kind = (exc.name or "http_error").lower().replace(" ", "_")
        payload = {"error": {"kind": kind, "message": exc.description}}
        return jsonify(payload), exc.code or 500

    return app


def store_from_env() -> KeyValueStore:
    """Build the key-value store named by ``RECIPE_STORE``."""

    backend = os.environ.get("RECIPE_STORE", "firestore").strip().lower()
    if backend == "memory":
        logger.warning("Using the in-memory recipe store; data is lost on restart")
        return InMemoryKeyValueStore()

    if backend not in ("firestore", "gcs"):
        raise RuntimeError(f"Unknown RECIPE_STORE {backend!r}; expected firestore, gcs or memory.")

    if FirestoreKeyValueStore is None or CloudStorageKeyValueStore is None:
        raise RuntimeError(
            "google-cloud-firestore and google-cloud-storage are not installed. Install them, "
            "set RECIPE_STORE=memory or pass an explicit repository to create_app."
        )
    if backend == "gcs":
        return CloudStorageKeyValueStore.from_env()
    return FirestoreKeyValueStore.from_env()


def _repository(app: Flask) -> RecipeRepository:
    return app.config["RECIPE_REPOSITORY"]


def _json_from_request() -> Any:
    try:
        return request.get_json(force=True)
    except BadRequest as exc:
        raise InvalidInput([FieldError("body", "must be valid JSON")], "Malformed JSON body.") from exc


__all__ = ["create_app", "store_from_env", "Recipe", "RecipeRepository"]
