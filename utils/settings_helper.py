"""
Settings helper: read app settings from DB for use in app context and routes.

Configuration values are resolved per call, never cached: the settings table
first, then the process environment, in the order given by ``sources``.
"""
import json
import os

from flask import current_app

from models import db
from models.settings import Settings

SOURCE_STORE = 'store'
SOURCE_ENV = 'env'
DEFAULT_SOURCES = (SOURCE_STORE, SOURCE_ENV)


def get_setting(key, default=''):
    """Get setting value by key. Safe to call from any request context."""
    try:
        setting = Settings.query.filter_by(key=key).first()
        return setting.value if setting and setting.value is not None else default
    except Exception:
        return default


def set_setting(key, value, description=''):
    """Set or update setting value. Caller commits."""
    setting = Settings.query.filter_by(key=key).first()
    if setting:
        setting.value = value
        if description:
            setting.description = description
    else:
        setting = Settings(key=key, value=value, description=description)
        db.session.add(setting)
    return setting


def get_config_blob(name):
    """Return the JSON object stored under ``name``, or {} when missing or malformed."""
    raw = get_setting(name, '')
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        current_app.logger.warning(f"Setting '{name}' is not valid JSON; ignoring it")
        return {}
    return data if isinstance(data, dict) else {}


def set_config_blob(name, values, description=''):
    """Merge ``values`` into the stored blob; None values remove keys. Caller commits."""
    blob = get_config_blob(name)
    for key, value in values.items():
        if value is None:
            blob.pop(key, None)
        else:
            blob[key] = value
    set_setting(name, json.dumps(blob), description)
    return blob


def resolve_config(key, env_var=None, blob=None, sources=DEFAULT_SOURCES, default=None):
    """
    Resolve one configuration value.

    Args:
        key: Setting key, or key inside ``blob`` when a blob name is given
        env_var: Environment variable consulted by the env source
        blob: Optional name of a JSON blob in the settings table
        sources: Lookup order; first non-empty value wins
        default: Returned when no source has a value (None means "not configured")
    """
    for source in sources:
        if source == SOURCE_STORE:
            if blob:
                value = get_config_blob(blob).get(key)
            else:
                value = get_setting(key, None)
        elif source == SOURCE_ENV:
            value = os.environ.get(env_var) if env_var else None
        else:
            raise ValueError(f"Unknown configuration source: {source}")

        if value is not None and str(value).strip() != '':
            return value.strip() if isinstance(value, str) else value
    return default
