import os
import json
import logging

from markme.constants import (
    PROGRAM_STORAGE,
    SETTINGS_FILE,
    DEFAULT_SETTINGS,
    API_BASE_URL_ENV,
)

logger = logging.getLogger(__name__)


def create_folders(*folders):
    for folder in (PROGRAM_STORAGE,) + folders:
        if folder and not os.path.exists(folder):
            os.makedirs(folder)


def load_data(filepath, default):
    if os.path.exists(filepath):
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.warning("Could not read %s, using defaults", filepath, exc_info=True)
            return default
    else:
        save_data(filepath, default)
        return default


def save_data(filepath, data):
    try:
        folder = os.path.dirname(filepath)
        if folder and not os.path.exists(folder):
            os.makedirs(folder)

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=4)
        return True
    except OSError:
        logger.exception("Failed to save %s", filepath)
        return False


def load_settings(filepath=SETTINGS_FILE):
    stored = load_data(filepath, dict(DEFAULT_SETTINGS))
    settings = dict(DEFAULT_SETTINGS)
    if isinstance(stored, dict):
        settings.update({k: v for k, v in stored.items() if k in DEFAULT_SETTINGS})

    env_url = os.environ.get(API_BASE_URL_ENV)
    if env_url:
        settings["api_base_url"] = env_url
    return settings


def save_settings(settings, filepath=SETTINGS_FILE):
    data = {k: settings[k] for k in DEFAULT_SETTINGS if k in settings}
    return save_data(filepath, data)


def export_path(folder, filename):
    if folder and not os.path.exists(folder):
        os.makedirs(folder)
    return os.path.join(folder, filename)
