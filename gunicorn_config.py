"""
Gunicorn config: bind to 0.0.0.0 and PORT for Railway/Render.
Gateway calls are bounded by CHAPA_TIMEOUT_SECONDS, well under the worker timeout.
"""
import os

bind = "0.0.0.0:{}".format(os.environ.get("PORT", "8080"))
workers = int(os.environ.get("WEB_CONCURRENCY", "2"))
threads = 4
timeout = 60
accesslog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
