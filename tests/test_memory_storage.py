from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from cookbook.memory_storage import SAMPLE_RECIPES, InMemoryRecipeStorage
from cookbook.query import build_filter


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(minutes=1)
        return self.now


def add(storage, title, tags=(), image_bytes=None):
    return storage.add_recipe(
        title=title,
        ingredients="",
        instructions="",
        tags=list(tags),
        image_bytes=image_bytes,
    )


def test_recipes_are_listed_most_recently_updated_first():
    storage = InMemoryRecipeStorage(clock=FakeClock())
    soup = add(storage, "Soup")
    cake = add(storage, "Cake")
    bread = add(storage, "Bread")

    assert [recipe.id for recipe in storage.list_recipes()] == [bread.id, cake.id, soup.id]

    storage.update_recipe(
        soup.id,
        title="Tomato Soup",
        ingredients="",
        instructions="",
        tags=[],
        image_bytes=None,
    )

    assert [recipe.id for recipe in storage.list_recipes()] == [soup.id, bread.id, cake.id]


def test_ties_on_timestamp_list_latest_write_first():
    fixed = datetime(2024, 1, 1, tzinfo=timezone.utc)
    storage = InMemoryRecipeStorage(clock=lambda: fixed)
    first = add(storage, "First")
    second = add(storage, "Second")

    assert [recipe.id for recipe in storage.list_recipes()] == [second.id, first.id]


def test_list_recipes_applies_predicate_in_order():
    storage = InMemoryRecipeStorage(clock=FakeClock())
    carbonara = add(storage, "Pasta Carbonara", ["italian", "pasta"])
    add(storage, "Salad", ["italian"])
    pesto = add(storage, "Pasta Pesto", ["italian"])

    result = storage.list_recipes(build_filter("pasta", "italian"))

    assert [recipe.id for recipe in result] == [pesto.id, carbonara.id]


def test_add_recipe_encodes_tags_and_sets_timestamps():
    clock = FakeClock()
    storage = InMemoryRecipeStorage(clock=clock)

    recipe = add(storage, "Pizza", ["pizza", "italian"])

    assert recipe.tags_raw == ", italian, pizza,"
    assert recipe.created_at == recipe.updated_at == clock.now


def test_update_refreshes_updated_at_only():
    storage = InMemoryRecipeStorage(clock=FakeClock())
    recipe = add(storage, "Pizza")
    created_at = recipe.created_at

    updated = storage.update_recipe(
        recipe.id,
        title="Pizza Bianca",
        ingredients="dough",
        instructions="Bake.",
        tags=["pizza"],
        image_bytes=b"new",
    )

    assert updated.created_at == created_at
    assert updated.updated_at > created_at
    assert updated.tags_raw == ", pizza,"
    assert updated.image_bytes == b"new"


def test_update_image_handling():
    storage = InMemoryRecipeStorage()
    recipe = add(storage, "Toast", image_bytes=b"old")
    fields = dict(title="Toast", ingredients="", instructions="", tags=[])

    storage.update_recipe(recipe.id, image_bytes=None, **fields)
    assert storage.get_recipe(recipe.id).image_bytes == b"old"

    storage.update_recipe(recipe.id, image_bytes=None, remove_image=True, **fields)
    assert storage.get_recipe(recipe.id).image_bytes is None


def test_missing_recipes_raise_key_error():
    storage = InMemoryRecipeStorage()

    with pytest.raises(KeyError):
        storage.get_recipe("missing")
    with pytest.raises(KeyError):
        storage.delete_recipe("missing")
    with pytest.raises(KeyError):
        storage.update_recipe(
            "missing",
            title="x",
            ingredients="",
            instructions="",
            tags=[],
            image_bytes=None,
        )


def test_delete_recipe():
    storage = InMemoryRecipeStorage()
    recipe = add(storage, "Soup")

    storage.delete_recipe(recipe.id)

    assert list(storage.list_recipes()) == []


def test_migrate_records_rewrites_only_legacy_tags():
    storage = InMemoryRecipeStorage(clock=FakeClock())
    legacy = add(storage, "Borscht")
    legacy.tags_raw = "Soup, traditional,SOUP"
    canonical = add(storage, "Cake", ["dessert"])
    untagged = add(storage, "Water")
    untagged.tags_raw = None
    updated_at = legacy.updated_at

    assert storage.migrate_records() == 1

    assert legacy.tags_raw == ", soup, traditional,"
    assert legacy.updated_at == updated_at
    assert canonical.tags_raw == ", dessert,"
    assert untagged.tags_raw is None
    assert storage.migrate_records() == 0


def test_migrate_records_backfills_missing_updated_at():
    storage = InMemoryRecipeStorage(clock=FakeClock())
    old = add(storage, "Old Stew")
    old.updated_at = None
    newer = add(storage, "Fresh Bread")

    assert storage.migrate_records() == 1

    assert old.updated_at == old.created_at
    assert [recipe.id for recipe in storage.list_recipes()] == [newer.id, old.id]
    assert storage.migrate_records() == 0


def test_sample_recipes_are_seeded():
    storage = InMemoryRecipeStorage.with_sample_recipes()

    recipes = list(storage.list_recipes())

    assert len(recipes) == len(SAMPLE_RECIPES)
    italian = storage.list_recipes(build_filter("", "italian"))
    assert {recipe.title for recipe in italian} == {"Pasta Carbonara", "Pizza Margherita"}
