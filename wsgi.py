"""
WSGI / Flask-Migrate entry point for the annotation engine.

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi auto-resolve-comments <document_id> --days 30
"""

from app import create_app

app = create_app()
