"""
WSGI entry point (Railway/Render): gunicorn -c gunicorn_config.py wsgi:app
"""
from app import create_app
from config import get_config

app = create_app(get_config())
application = app
