from __future__ import annotations

import itertools
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from . import tags as tag_codec
from .models import Recipe
from .query import Predicate, apply
from .storage import RecipeRepository

logger = logging.getLogger(__name__)


SAMPLE_RECIPES = [
    (
        "Borscht",
        "beetroot\ncabbage\npotatoes\nbeef",
        "Simmer the beef, then add the vegetables.",
        ["soup", "traditional", "ukrainian"],
    ),
    (
        "Pasta Carbonara",
        "spaghetti\neggs\nguanciale\npecorino",
        "Cook the pasta, crisp the guanciale, toss with eggs and cheese.",
        ["italian", "pasta", "quick"],
    ),
    (
        "Caesar Salad",
        "romaine\nchicken\ncroutons\ndressing",
        "Chop everything and dress just before serving.",
        ["salad", "light", "healthy"],
    ),
    (
        "Pizza Margherita",
        "dough\ntomatoes\nmozzarella\nbasil",
        "Stretch the dough, add the toppings and bake hot.",
        ["pizza", "italian", "vegetarian"],
    ),
    (
        "Chocolate Cake",
        "flour\ncocoa\nsugar\neggs",
        "Mix the ingredients and bake.",
        ["dessert", "sweet", "chocolate"],
    ),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRecipeStorage(RecipeRepository):
    """Process local recipe storage for previews and tests."""

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._recipes: Dict[str, Recipe] = {}
        # Breaks ties between recipes written within the same clock tick.
        self._revisions: Dict[str, int] = {}
        self._counter = itertools.count()

    @classmethod
    def with_sample_recipes(cls) -> "InMemoryRecipeStorage":
        storage = cls()
        for title, ingredients, instructions, tags in SAMPLE_RECIPES:
            storage.add_recipe(
                title=title,
                ingredients=ingredients,
                instructions=instructions,
                tags=tags,
                image_bytes=None,
            )
        return storage

    def list_recipes(self, predicate: Optional[Predicate] = None) -> List[Recipe]:
        recipes = sorted(
            self._recipes.values(),
            key=lambda recipe: (
                recipe.updated_at or datetime.min.replace(tzinfo=timezone.utc),
                self._revisions[recipe.id],
            ),
            reverse=True,
        )
        if predicate is None:
            return recipes
        return apply(recipes, predicate)

    def get_recipe(self, recipe_id: str) -> Recipe:
        try:
            return self._recipes[recipe_id]
        except KeyError:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.") from None

    def add_recipe(
        self,
        *,
        title: str,
        ingredients: str,
        instructions: str,
        tags: Sequence[str],
        image_bytes: bytes | None,
    ) -> Recipe:
        now = self._clock()
        recipe = Recipe(
            id=uuid.uuid4().hex,
            title=title,
            ingredients=ingredients,
            instructions=instructions,
            tags_raw=tag_codec.encode(tags),
            image_bytes=image_bytes or None,
            created_at=now,
            updated_at=now,
        )
        self._recipes[recipe.id] = recipe
        self._revisions[recipe.id] = next(self._counter)
        return recipe

    def update_recipe(
        self,
        recipe_id: str,
        *,
        title: str,
        ingredients: str,
        instructions: str,
        tags: Sequence[str],
        image_bytes: bytes | None,
        remove_image: bool = False,
    ) -> Recipe:
        recipe = self.get_recipe(recipe_id)

        recipe.title = title
        recipe.ingredients = ingredients
        recipe.instructions = instructions
        recipe.tags_raw = tag_codec.encode(tags)
        if image_bytes:
            recipe.image_bytes = image_bytes
        elif remove_image:
            recipe.image_bytes = None
        recipe.updated_at = self._clock()
        self._revisions[recipe_id] = next(self._counter)
        return recipe

    def delete_recipe(self, recipe_id: str) -> None:
        if recipe_id not in self._recipes:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")
        del self._recipes[recipe_id]
        del self._revisions[recipe_id]

    def migrate_records(self) -> int:
        migrated = 0
        for recipe in self._recipes.values():
            changed = False

            canonical = tag_codec.migrate(recipe.tags_raw)
            if canonical != recipe.tags_raw:
                logger.debug("Migrating tags of recipe %s: %r -> %r", recipe.id, recipe.tags_raw, canonical)
                recipe.tags_raw = canonical
                changed = True

            if recipe.updated_at is None:
                recipe.updated_at = recipe.created_at or self._clock()
                changed = True

            if changed:
                migrated += 1
        logger.info("Migrated %d stored recipes", migrated)
        return migrated


__all__ = ["InMemoryRecipeStorage", "SAMPLE_RECIPES"]
