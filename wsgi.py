"""WSGI entry point for the BenchBoost dashboard."""

import os

from benchboost_app import create_app

app = create_app(os.getenv("FLASK_ENV", "production"))
