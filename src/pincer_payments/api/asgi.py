"""ASGI entrypoint for the payments API."""

from pincer_payments.api.app import create_app
from pincer_payments.containers import build_container

app = create_app(build_container())
