"""ASGI entrypoint for the menu scheduler API."""

from menu_scheduler.api.app import create_app
from menu_scheduler.containers import build_container

app = create_app(build_container())
