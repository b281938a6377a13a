import io
import os
from typing import Optional

import click
from flask import Flask, abort, flash, redirect, render_template, request, send_file, url_for
from werkzeug.datastructures import FileStorage

from .images import UnsupportedImageError, compress_image
from .memory_storage import InMemoryRecipeStorage
from .models import Recipe
from .query import build_filter
from .storage import RecipeRepository
from .tags import normalize

try:
    from .gcp_storage import FirestoreRecipeStorage
except ImportError:  # pragma: no cover - allows running tests without optional deps
    FirestoreRecipeStorage = None  # type: ignore[assignment,misc]

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
MAX_LISTED_TAGS = 6


def create_app(storage: Optional[RecipeRepository] = None) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    storage:
        Optional recipe repository. When ``None`` the backend is chosen by the
        ``COOKBOOK_STORAGE`` environment variable: ``firestore`` (the default)
        builds :class:`FirestoreRecipeStorage` from the environment, ``memory``
        starts an in-memory store seeded with sample recipes.
    """

    app = Flask(__name__)
    app.config.setdefault("MAX_CONTENT_LENGTH", 16 * 1024 * 1024)
    app.config.setdefault("IMAGE_MAX_DIMENSION", 1600)
    app.config.setdefault("IMAGE_JPEG_QUALITY", 80)
    app.secret_key = os.environ.get("FLASK_SECRET_KEY", "development-secret-change-me")

    if storage is None:
        storage = _storage_from_env()
    app.config["RECIPE_STORAGE"] = storage

    @app.get("/")
    def index() -> str:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        title_query = request.args.get("q", "")
        tag_query = request.args.get("tag", "")
        predicate = build_filter(title_query, tag_query)

        recipes = list(storage_backend.list_recipes(predicate))
        selected_id = request.args.get("selected")
        selected_recipe: Recipe | None = None

        if recipes:
            selected_recipe = next((recipe for recipe in recipes if recipe.id == selected_id), None)
            if selected_recipe is None:
                selected_recipe = recipes[0]
            selected_id = selected_recipe.id

        return render_template(
            "index.html",
            recipes=recipes,
            selected_recipe=selected_recipe,
            selected_id=selected_id,
            title_query=title_query,
            tag_query=tag_query,
            max_listed_tags=MAX_LISTED_TAGS,
            title="Recipes",
        )

    @app.post("/recipes")
    def create_recipe() -> str:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        title = request.form.get("title", "").strip()
        ingredients = request.form.get("ingredients", "").strip()
        instructions = request.form.get("instructions", "").strip()
        tags = normalize(request.form.get("tags", ""))
        image = request.files.get("image")

        if not title:
            flash("Please provide a recipe title.", "error")
            return redirect(url_for("new_recipe"))

        if image and image.filename and not _allowed_image(image.filename):
            flash("Unsupported image format. Allowed formats: PNG, JPG, JPEG, GIF, WEBP.", "error")
            return redirect(url_for("new_recipe"))

        try:
            image_bytes = _process_upload(app, image)
        except UnsupportedImageError:
            flash("The uploaded image could not be read.", "error")
            return redirect(url_for("new_recipe"))

        try:
            new_recipe = storage_backend.add_recipe(
                title=title,
                ingredients=ingredients,
                instructions=instructions,
                tags=tags,
                image_bytes=image_bytes,
            )
        except Exception as exc:
            app.logger.exception("Failed to save recipe %r", title)
            flash(f"Failed to save recipe: {exc}", "error")
            return redirect(url_for("index"))

        flash(f"Recipe '{title}' saved.", "success")
        return redirect(url_for("index", selected=new_recipe.id))

    @app.get("/recipes/new")
    def new_recipe() -> str:
        return render_template("add_recipe.html", title="Add recipe")

    @app.get("/recipes/<recipe_id>/edit")
    def edit_recipe(recipe_id: str) -> str:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        try:
            recipe = storage_backend.get_recipe(recipe_id)
        except KeyError:
            flash("Recipe not found.", "error")
            return redirect(url_for("index"))

        tags_text = ", ".join(sorted(recipe.tags))
        page_title = f"Edit {recipe.title}" if recipe.title else "Edit recipe"

        return render_template(
            "edit_recipe.html",
            recipe=recipe,
            tags_text=tags_text,
            title=page_title,
        )

    @app.post("/recipes/<recipe_id>")
    def update_recipe(recipe_id: str) -> str:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]

        title = request.form.get("title", "").strip()
        ingredients = request.form.get("ingredients", "").strip()
        instructions = request.form.get("instructions", "").strip()
        tags = normalize(request.form.get("tags", ""))
        image = request.files.get("image")
        remove_image = request.form.get("remove_image") == "1"

        if image and image.filename:
            remove_image = False

        if not title:
            flash("Please provide a recipe title.", "error")
            return redirect(url_for("edit_recipe", recipe_id=recipe_id))

        if image and image.filename and not _allowed_image(image.filename):
            flash("Unsupported image format. Allowed formats: PNG, JPG, JPEG, GIF, WEBP.", "error")
            return redirect(url_for("edit_recipe", recipe_id=recipe_id))

        try:
            image_bytes = _process_upload(app, image)
        except UnsupportedImageError:
            flash("The uploaded image could not be read.", "error")
            return redirect(url_for("edit_recipe", recipe_id=recipe_id))

        try:
            updated_recipe = storage_backend.update_recipe(
                recipe_id,
                title=title,
                ingredients=ingredients,
                instructions=instructions,
                tags=tags,
                image_bytes=image_bytes,
                remove_image=remove_image,
            )
        except KeyError:
            flash("Recipe not found.", "error")
            return redirect(url_for("index"))
        except Exception as exc:
            app.logger.exception("Failed to update recipe %s", recipe_id)
            flash(f"Failed to update recipe: {exc}", "error")
            return redirect(url_for("edit_recipe", recipe_id=recipe_id))

        flash(f"Recipe '{updated_recipe.title}' updated.", "success")
        return redirect(url_for("index", selected=updated_recipe.id))

    @app.post("/recipes/<recipe_id>/delete")
    def delete_recipe(recipe_id: str) -> str:
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]
        try:
            storage_backend.delete_recipe(recipe_id)
        except KeyError:
            flash("Recipe not found.", "error")
        except Exception as exc:
            app.logger.exception("Failed to delete recipe %s", recipe_id)
            flash(f"Failed to delete recipe: {exc}", "error")
        else:
            flash("Recipe deleted.", "success")
        return redirect(url_for("index"))

    @app.get("/recipes/<recipe_id>/image")
    def recipe_image(recipe_id: str):
        storage_backend: RecipeRepository = app.config["RECIPE_STORAGE"]
        try:
            recipe = storage_backend.get_recipe(recipe_id)
        except KeyError:
            abort(404)

        if not recipe.image_bytes:
            abort(404)

        return send_file(io.BytesIO(recipe.image_bytes), mimetype="image/jpeg")

    @app.cli.command("migrate")
    def migrate_command() -> None:
        """Bring recipes stored by older releases up to date."""
        migrated = app.config["RECIPE_STORAGE"].migrate_records()
        click.echo(f"Migrated {migrated} recipe(s).")

    return app


def _storage_from_env() -> RecipeRepository:
    backend = os.environ.get("COOKBOOK_STORAGE", "firestore").lower()

    if backend == "memory":
        return InMemoryRecipeStorage.with_sample_recipes()

    if backend != "firestore":
        raise RuntimeError(f"Unknown COOKBOOK_STORAGE backend {backend!r}. Use 'firestore' or 'memory'.")

    if FirestoreRecipeStorage is None:
        raise RuntimeError(
            "google-cloud-firestore is not installed. Install optional dependencies "
            "or pass an explicit storage backend to create_app."
        )
    return FirestoreRecipeStorage.from_env()


def _process_upload(app: Flask, image: FileStorage | None) -> bytes | None:
    if not image or not image.filename:
        return None

    image.stream.seek(0)
    return compress_image(
        image.read(),
        max_dimension=app.config["IMAGE_MAX_DIMENSION"],
        quality=app.config["IMAGE_JPEG_QUALITY"],
    )


def _allowed_image(filename: str) -> bool:
    if not filename or "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[1].lower()
    return ext in ALLOWED_IMAGE_EXTENSIONS


__all__ = ["create_app", "Recipe"]
