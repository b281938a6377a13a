"""WSGI entrypoint for the Cookbook application.

Serve it with any WSGI server, or locally with ``flask --app main run``.
Set ``COOKBOOK_STORAGE=memory`` to try it without Firestore credentials.
Recipes stored by older releases (legacy tag strings, missing timestamps) are
brought up to date with ``flask --app main migrate``; the application never
migrates data on its own at startup.
"""

from cookbook import create_app

app = create_app()


__all__ = ["app"]
