from __future__ import annotations

from pathlib import Path
import json
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from recipe_api import create_app, store_from_env
from recipe_api.errors import StorageError
from recipe_api.repository import INDEX_KEY, RecipeRepository
from recipe_api.storage import InMemoryKeyValueStore


class BrokenStore:
    """Store whose every call fails like an unreachable backend."""

    def get(self, key):
        raise StorageError(f"get {key!r} failed: connection refused")

    def set(self, key, value):
        raise StorageError(f"set {key!r} failed: connection refused")

    def delete(self, key):
        raise StorageError(f"delete {key!r} failed: connection refused")


def pancakes(**overrides):
    payload = {
        "id": "",
        "name": "Pancakes",
        "description": "Fluffy breakfast pancakes",
        "ingredients": [
            {"name": "flour", "amount": 1.5, "unit": "cup", "optional": False, "notes": None},
            {"name": "milk", "amount": 1.25, "unit": "cup", "optional": False, "notes": None},
            {"name": "blueberries", "amount": 0.5, "unit": "cup", "optional": True, "notes": "fresh"},
        ],
        "instructions": [
            {"order": 1, "instruction": "Whisk everything together.", "duration_mins": 5},
            {"order": 2, "instruction": "Fry in a hot pan.", "duration_mins": None},
        ],
        "servings": 4,
        "prep_time_mins": 10,
        "cook_time_mins": 15,
        "difficulty": "easy",
        "tags": ["breakfast", "sweet"],
        "dietary_info": ["vegetarian"],
        "created_at": 0,
        "updated_at": 0,
    }
    payload.update(overrides)
    return payload


def create_test_client(store=None):
    store = store if store is not None else InMemoryKeyValueStore()
    app = create_app(repository=RecipeRepository(store))
    app.config.update(TESTING=True)
    return app.test_client(), store


def test_health_check():
    client, _ = create_test_client()

    response = client.get("/health")

    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_list_is_empty_on_fresh_store():
    client, _ = create_test_client()

    response = client.get("/api/recipes")

    assert response.status_code == 200
    assert response.get_json() == []


def test_create_then_list_returns_the_recipe():
    client, _ = create_test_client()

    created = client.post("/api/recipes", json=pancakes())
    assert created.status_code == 201
    body = created.get_json()
    assert body["id"]
    assert body["name"] == "Pancakes"
    assert body["difficulty"] == "easy"
    assert body["created_at"] > 0
    assert body["updated_at"] == body["created_at"]

    listed = client.get("/api/recipes").get_json()
    assert len(listed) == 1
    assert listed[0]["name"] == "Pancakes"
    assert listed[0]["id"] == body["id"]


def test_response_uses_wire_field_names():
    client, _ = create_test_client()

    body = client.post("/api/recipes", json=pancakes()).get_json()

    assert list(body) == [
        "id",
        "name",
        "description",
        "ingredients",
        "instructions",
        "servings",
        "prep_time_mins",
        "cook_time_mins",
        "difficulty",
        "tags",
        "dietary_info",
        "created_at",
        "updated_at",
    ]
    assert body["ingredients"][2] == {
        "name": "blueberries",
        "amount": 0.5,
        "unit": "cup",
        "optional": True,
        "notes": "fresh",
    }
    assert body["instructions"][1] == {
        "order": 2,
        "instruction": "Fry in a hot pan.",
        "duration_mins": None,
    }


def test_get_recipe_by_id():
    client, _ = create_test_client()
    recipe_id = client.post("/api/recipes", json=pancakes()).get_json()["id"]

    response = client.get(f"/api/recipes/{recipe_id}")

    assert response.status_code == 200
    assert response.get_json()["name"] == "Pancakes"


def test_get_missing_recipe_returns_404():
    client, _ = create_test_client()

    response = client.get("/api/recipes/does-not-exist")

    assert response.status_code == 404
    assert response.get_json()["error"]["kind"] == "not_found"


def test_create_rejects_unknown_difficulty():
    client, store = create_test_client()

    response = client.post("/api/recipes", json=pancakes(difficulty="impossible"))

    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["kind"] == "invalid_input"
    assert [item["field"] for item in error["fields"]] == ["difficulty"]
    assert store.get(INDEX_KEY) is None


def test_create_lists_every_violated_field():
    client, _ = create_test_client()

    response = client.post(
        "/api/recipes",
        json=pancakes(name="", ingredients=[], instructions=[], servings=0),
    )

    assert response.status_code == 400
    fields = {item["field"] for item in response.get_json()["error"]["fields"]}
    assert fields == {"name", "ingredients", "instructions", "servings"}


def test_malformed_json_is_invalid_input():
    client, _ = create_test_client()

    response = client.post(
        "/api/recipes",
        data="{not json",
        content_type="application/json",
    )

    assert response.status_code == 400
    assert response.get_json()["error"]["kind"] == "invalid_input"


def test_non_object_body_is_invalid_input():
    client, _ = create_test_client()

    response = client.post("/api/recipes", json=["Pancakes"])

    assert response.status_code == 400
    assert response.get_json()["error"]["fields"][0]["field"] == "body"


def test_update_replaces_fields_and_keeps_identity():
    client, _ = create_test_client()
    created = client.post("/api/recipes", json=pancakes()).get_json()

    response = client.put(
        f"/api/recipes/{created['id']}",
        json=pancakes(id="something-else", name="Buttermilk Pancakes", servings=6, created_at=1),
    )

    assert response.status_code == 200
    updated = response.get_json()
    assert updated["id"] == created["id"]
    assert updated["name"] == "Buttermilk Pancakes"
    assert updated["servings"] == 6
    assert updated["created_at"] == created["created_at"]
    assert updated["updated_at"] >= created["updated_at"]

    fetched = client.get(f"/api/recipes/{created['id']}").get_json()
    assert fetched == updated
    assert client.get("/api/recipes/something-else").status_code == 404


def test_update_missing_recipe_returns_404():
    client, _ = create_test_client()

    response = client.put("/api/recipes/nope", json=pancakes())

    assert response.status_code == 404


def test_update_rejects_empty_ingredients():
    client, _ = create_test_client()
    recipe_id = client.post("/api/recipes", json=pancakes()).get_json()["id"]

    response = client.put(f"/api/recipes/{recipe_id}", json=pancakes(ingredients=[]))

    assert response.status_code == 400
    assert client.get(f"/api/recipes/{recipe_id}").get_json()["ingredients"]


def test_delete_recipe_removes_item():
    client, _ = create_test_client()
    recipe_id = client.post("/api/recipes", json=pancakes()).get_json()["id"]

    response = client.delete(f"/api/recipes/{recipe_id}")

    assert response.status_code == 200
    assert response.get_json() == {"status": "deleted"}
    assert client.get(f"/api/recipes/{recipe_id}").status_code == 404
    assert client.get("/api/recipes").get_json() == []


def test_delete_missing_recipe_returns_404():
    client, _ = create_test_client()

    response = client.delete("/api/recipes/nope")

    assert response.status_code == 404


def test_unknown_routes_and_methods_are_not_found():
    client, _ = create_test_client()

    assert client.get("/api/ingredients").status_code == 404
    assert client.patch("/api/recipes/abc", json={}).status_code == 404

    response = client.delete("/api/recipes")
    assert response.status_code == 404
    assert response.get_json()["error"]["kind"] == "not_found"


def test_storage_failure_does_not_leak_details():
    client, _ = create_test_client(store=BrokenStore())

    response = client.get("/api/recipes")

    assert response.status_code == 500
    error = response.get_json()["error"]
    assert error["kind"] == "storage_error"
    assert error["message"] == "The recipe store is unavailable."
    assert "_recipe_ids" not in response.get_data(as_text=True)
    assert "connection refused" not in response.get_data(as_text=True)


def test_oversized_body_is_rejected():
    client, _ = create_test_client()

    response = client.post(
        "/api/recipes",
        data=b"x" * (2 * 1024 * 1024),
        content_type="application/json",
    )

    assert response.status_code == 413


def test_memory_store_selected_from_env(monkeypatch):
    monkeypatch.setenv("RECIPE_STORE", "memory")

    client = create_app().test_client()

    assert client.post("/api/recipes", json=pancakes()).status_code == 201
    assert len(client.get("/api/recipes").get_json()) == 1


def test_unknown_store_from_env_is_rejected(monkeypatch):
    monkeypatch.setenv("RECIPE_STORE", "redis")

    with pytest.raises(RuntimeError):
        store_from_env()


def raw_pancakes(amount_literal):
    body = json.dumps(pancakes(), allow_nan=False)
    return body.replace('"amount": 1.5', f'"amount": {amount_literal}', 1)


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "1e400", "9" * 400])
def test_non_finite_or_oversized_amount_is_rejected(literal):
    client, store = create_test_client()

    response = client.post(
        "/api/recipes",
        data=raw_pancakes(literal),
        content_type="application/json",
    )

    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["kind"] == "invalid_input"
    assert [item["field"] for item in error["fields"]] == ["ingredients[0].amount"]
    assert store.get(INDEX_KEY) is None


def test_type_and_rule_errors_are_listed_together():
    client, _ = create_test_client()

    response = client.post("/api/recipes", json=pancakes(name=7, ingredients=[], servings=0))

    assert response.status_code == 400
    fields = {item["field"] for item in response.get_json()["error"]["fields"]}
    assert fields == {"name", "ingredients", "servings"}


def test_update_missing_recipe_with_incomplete_body_returns_404():
    client, _ = create_test_client()

    response = client.put("/api/recipes/nope", json={"name": "x"})

    assert response.status_code == 404
    assert response.get_json()["error"]["kind"] == "not_found"


def test_update_missing_recipe_with_malformed_json_returns_400():
    client, _ = create_test_client()

    response = client.put(
        "/api/recipes/nope",
        data="{not json",
        content_type="application/json",
    )

    assert response.status_code == 400


def test_update_existing_recipe_with_incomplete_body_returns_400():
    client, _ = create_test_client()
    recipe_id = client.post("/api/recipes", json=pancakes()).get_json()["id"]

    response = client.put(f"/api/recipes/{recipe_id}", json={"name": "x"})

    assert response.status_code == 400
    fields = {item["field"] for item in response.get_json()["error"]["fields"]}
    assert fields == {"ingredients", "instructions", "servings", "difficulty"}
