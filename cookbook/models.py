from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .tags import decode


@dataclass
class Recipe:
    """Domain object representing a stored recipe."""

    id: str
    title: str
    ingredients: str = ""
    instructions: str = ""
    tags_raw: Optional[str] = None
    image_bytes: Optional[bytes] = field(default=None, repr=False)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def tags(self) -> List[str]:
        return decode(self.tags_raw)

    @property
    def ingredient_lines(self) -> List[str]:
        return [line.strip() for line in self.ingredients.splitlines() if line.strip()]

    @property
    def has_image(self) -> bool:
        return bool(self.image_bytes)


__all__ = ["Recipe"]
