from __future__ import annotations

from typing import Iterable, Optional, Protocol, Sequence

from .models import Recipe
from .query import Predicate


class RecipeRepository(Protocol):
    """Protocol describing the behaviour required by the web layer."""

    def list_recipes(self, predicate: Optional[Predicate] = None) -> Iterable[Recipe]:
        """Return stored recipes, most recently updated first.

        When ``predicate`` is given only the recipes it accepts are returned,
        still in that order.
        """

    def get_recipe(self, recipe_id: str) -> Recipe:
        """Return a single recipe or raise :class:`KeyError` if missing."""

    def add_recipe(
        self,
        *,
        title: str,
        ingredients: str,
        instructions: str,
        tags: Sequence[str],
        image_bytes: bytes | None,
    ) -> Recipe:
        """Persist a new recipe and return the stored instance."""

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
        """Replace the recipe's fields, refresh ``updated_at`` and return it."""

    def delete_recipe(self, recipe_id: str) -> None:
        """Remove a recipe or raise :class:`KeyError` if missing."""

    def migrate_records(self) -> int:
        """Bring recipes written by older releases up to date.

        Legacy tag strings are rewritten into canonical form and a missing
        ``updated_at`` is backfilled from ``created_at``. Returns the number
        of recipes that were changed. Running it again right away returns
        ``0``.
        """


__all__ = ["RecipeRepository"]
