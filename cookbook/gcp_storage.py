from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Iterable, Optional, Sequence

from google.cloud import firestore

from . import tags as tag_codec
from .models import Recipe
from .query import Predicate, apply
from .storage import RecipeRepository

logger = logging.getLogger(__name__)

# Firestore rejects batches with more writes than this.
MAX_BATCH_WRITES = 500


class FirestoreRecipeStorage(RecipeRepository):
    """GCP backed recipe storage using Firestore.

    Photos are small JPEGs produced by :func:`cookbook.images.compress_image`
    and are kept inline in the document as a bytes field.
    """

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipes",
        client: Optional[firestore.Client] = None,
    ) -> None:
        self._project = project
        self._collection_name = collection_name

        self._firestore_client = client or firestore.Client(project=project)
        self._collection = self._firestore_client.collection(collection_name)

    @classmethod
    def from_env(cls) -> "FirestoreRecipeStorage":
        """Build a storage instance from environment variables."""

        project = os.environ.get("GCP_PROJECT")
        collection_name = os.environ.get("RECIPES_COLLECTION", "recipes")
        return cls(project=project, collection_name=collection_name)

    def list_recipes(self, predicate: Optional[Predicate] = None) -> Iterable[Recipe]:
        query = self._collection.order_by("updated_at", direction=firestore.Query.DESCENDING)
        recipes = (self._doc_to_recipe(doc.id, doc.to_dict() or {}) for doc in query.stream())
        if predicate is None:
            return list(recipes)
        return apply(recipes, predicate)

    def get_recipe(self, recipe_id: str) -> Recipe:
        doc_ref = self._collection.document(recipe_id)
        snapshot = doc_ref.get()

        if not snapshot.exists:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

        data = snapshot.to_dict() or {}
        return self._doc_to_recipe(snapshot.id, data)

    def add_recipe(
        self,
        *,
        title: str,
        ingredients: str,
        instructions: str,
        tags: Sequence[str],
        image_bytes: bytes | None,
    ) -> Recipe:
        doc = {
            "title": title,
            "ingredients": ingredients,
            "instructions": instructions,
            "tags_raw": tag_codec.encode(tags),
            "image": image_bytes or None,
            "created_at": firestore.SERVER_TIMESTAMP,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }

        doc_ref = self._collection.document()
        doc_ref.set(doc)

        snapshot = doc_ref.get()
        data = snapshot.to_dict() or {}
        return self._doc_to_recipe(snapshot.id, data)

    def delete_recipe(self, recipe_id: str) -> None:
        doc_ref = self._collection.document(recipe_id)
        snapshot = doc_ref.get()

        if not snapshot.exists:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

        doc_ref.delete()

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
        doc_ref = self._collection.document(recipe_id)
        snapshot = doc_ref.get()

        if not snapshot.exists:
            raise KeyError(f"Recipe '{recipe_id}' does not exist.")

        update_doc = {
            "title": title,
            "ingredients": ingredients,
            "instructions": instructions,
            "tags_raw": tag_codec.encode(tags),
            "updated_at": firestore.SERVER_TIMESTAMP,
        }

        if image_bytes:
            update_doc["image"] = image_bytes
        elif remove_image:
            update_doc["image"] = None

        doc_ref.update(update_doc)

        snapshot = doc_ref.get()
        data = snapshot.to_dict() or {}
        return self._doc_to_recipe(snapshot.id, data)

    def migrate_records(self) -> int:
        batch = self._firestore_client.batch()
        pending = 0
        migrated = 0

        for doc in self._collection.stream():
            data = doc.to_dict() or {}
            changes = {}

            tags_raw = data.get("tags_raw")
            if tags_raw is not None and not isinstance(tags_raw, str):
                logger.warning("Skipping non-text tags of recipe %s: %r", doc.id, tags_raw)
            else:
                canonical = tag_codec.migrate(tags_raw)
                if canonical != tags_raw:
                    logger.debug("Migrating tags of recipe %s: %r -> %r", doc.id, tags_raw, canonical)
                    changes["tags_raw"] = canonical

            # Ordered queries on updated_at leave out documents without it.
            if not isinstance(data.get("updated_at"), datetime):
                created_at = data.get("created_at")
                changes["updated_at"] = (
                    created_at if isinstance(created_at, datetime) else firestore.SERVER_TIMESTAMP
                )

            if not changes:
                continue

            batch.update(doc.reference, changes)
            pending += 1
            migrated += 1

            if pending == MAX_BATCH_WRITES:
                batch.commit()
                batch = self._firestore_client.batch()
                pending = 0

        if pending:
            batch.commit()

        logger.info("Migrated %d stored recipes", migrated)
        return migrated

    def _doc_to_recipe(self, doc_id: str, data: dict) -> Recipe:
        tags_raw = data.get("tags_raw")
        if not isinstance(tags_raw, str):
            tags_raw = None

        image = data.get("image")
        image_bytes = bytes(image) if image else None

        return Recipe(
            id=doc_id,
            title=data.get("title", ""),
            ingredients=data.get("ingredients") or "",
            instructions=data.get("instructions") or "",
            tags_raw=tags_raw,
            image_bytes=image_bytes,
            created_at=_as_datetime(data.get("created_at")),
            updated_at=_as_datetime(data.get("updated_at")),
        )


def _as_datetime(value: object) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


__all__ = ["FirestoreRecipeStorage"]
