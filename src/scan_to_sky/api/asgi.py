"""ASGI entrypoint for the scan-to-sky API."""

from scan_to_sky.api.app import create_app
from scan_to_sky.containers import build_container

app = create_app(build_container())
