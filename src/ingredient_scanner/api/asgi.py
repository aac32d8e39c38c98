"""ASGI entrypoint for the ingredient scanner API."""

from ingredient_scanner.api.app import create_app
from ingredient_scanner.containers import build_container

app = create_app(build_container())
