"""Title search and tag filtering over recipe listings."""

from __future__ import annotations

import unicodedata
from typing import Callable, Iterable, List

from .models import Recipe
from .tags import tag_needle

Predicate = Callable[[Recipe], bool]


def fold(text: str) -> str:
    """Lowercase ``text`` and strip diacritics so ``Crème`` compares as ``creme``."""

    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return stripped.casefold()


def build_filter(title_query: str, tag_query: str) -> Predicate:
    """Build the predicate used to narrow the recipe list.

    ``title_query`` is matched as a substring of the title ignoring case and
    diacritics. ``tag_query`` must equal one of the recipe's tags, again
    ignoring case and diacritics. Empty queries impose no condition; when
    both are given a recipe has to satisfy both.
    """

    conditions: List[Predicate] = []

    if title_query:
        folded_title_query = fold(title_query)
        conditions.append(lambda recipe: folded_title_query in fold(recipe.title or ""))

    if tag_query:
        needle = fold(tag_needle(tag_query))
        conditions.append(lambda recipe: needle in fold(recipe.tags_raw or ""))

    def predicate(recipe: Recipe) -> bool:
        return all(condition(recipe) for condition in conditions)

    return predicate


def apply(recipes: Iterable[Recipe], predicate: Predicate) -> List[Recipe]:
    """Return the recipes accepted by ``predicate`` in their original order."""

    return [recipe for recipe in recipes if predicate(recipe)]


__all__ = ["Predicate", "apply", "build_filter", "fold"]
