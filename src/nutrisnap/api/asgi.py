"""ASGI entrypoint for the meal logging API."""

from nutrisnap.api.app import create_app
from nutrisnap.containers import build_container

app = create_app(build_container())
