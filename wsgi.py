"""WSGI entry point: ``gunicorn wsgi:app``."""

from actionhub import create_app

app = create_app()
