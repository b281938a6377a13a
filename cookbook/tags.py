"""Canonical tag storage for recipes.

A recipe's tags are persisted as a single string such as
``", dessert, quick, vegan,"``. Every tag is lowercased and stripped, the set
is sorted, and the whole list is wrapped in a leading ``", "`` and a trailing
``","``. Looking for the substring ``", <tag>,"`` therefore only ever matches
a whole tag: searching for ``cat`` does not match a stored ``category``.

Tags containing commas cannot be represented, and tags that differ only by
case collapse into one lowercase tag.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

SEPARATOR = ","
PREFIX = ", "
SUFFIX = ","


def _split(text: str) -> List[str]:
    pieces = (piece.strip().lower() for piece in text.split(SEPARATOR))
    # Deduplicated through a set, so the order is not stable.
    return list({piece for piece in pieces if piece})


def decode(raw: Optional[str]) -> List[str]:
    """Return the tags stored in ``raw``. The order is not guaranteed."""

    if not raw:
        return []
    return _split(raw)


def normalize(text: str) -> List[str]:
    """Parse comma separated tags typed by a user."""

    if not text:
        return []
    return _split(text)


def encode(tags: Iterable[str]) -> str:
    cleaned = sorted(tag.strip() for tag in tags if tag.strip())
    return PREFIX + ", ".join(cleaned) + SUFFIX


def migrate(raw: Optional[str]) -> Optional[str]:
    """Rewrite a legacy tag string into canonical form.

    Empty values and strings that already carry the canonical wrapping are
    returned unchanged, so the function can be run over stored data any
    number of times.
    """

    if not raw:
        return raw
    if raw.startswith(PREFIX) and raw.endswith(SUFFIX):
        return raw
    return encode(decode(raw))


def tag_needle(tag_query: str) -> str:
    """Return the substring that matches ``tag_query`` as a whole stored tag."""

    return PREFIX + tag_query.lower() + SUFFIX


__all__ = ["decode", "encode", "migrate", "normalize", "tag_needle"]
