# keydeck/config_handler.py

import os
import sys
import json
import re
import logging
from typing import Any, Dict, Optional

import yaml

# --- Module-specific logger ---
logger = logging.getLogger(__name__)

PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
DEFAULT_SETTINGS_PATH = os.path.join(PACKAGE_DIR, "config", "default_config.json")
USER_SETTINGS_DIR = os.path.join(os.path.expanduser("~"), ".keydeck")
USER_SETTINGS_PATH = os.path.join(USER_SETTINGS_DIR, "user_config.json")

# 1. Matches // to the end of the line
# 2. Matches /* ... */ across multiple lines (non-greedy)
# String literals are matched first and kept, so "http://..." survives.
COMMENT_PATTERN = re.compile(r'("(?:\\.|[^"\\])*")|//.*?$|/\*.*?\*/', re.DOTALL | re.MULTILINE)


def strip_json_comments(text: str) -> str:
    return COMMENT_PATTERN.sub(lambda m: m.group(1) or '', text)


def load_jsonc_file(filepath: str) -> Optional[Any]:
    """
    Loads a JSON file that may contain single-line (//) and multi-line (/* */) comments.

    Args:
        filepath (str): The full path to the .jsonc or .json file.

    Returns:
        The parsed contents, or None if the file is not found or cannot be parsed.
    """
    if not os.path.exists(filepath):
        logger.info(f"Configuration file not found at: {filepath}")
        return None

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            file_content = f.read()
        return json.loads(strip_json_comments(file_content))

    except json.JSONDecodeError as e:
        logger.error(f"Error decoding JSON from {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not parse the configuration file at {filepath}. Please check for syntax errors.", file=sys.stderr)
        return None
    except IOError as e:
        logger.error(f"Error reading file {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not read the file at {filepath}.", file=sys.stderr)
        return None


def load_yaml_file(filepath: str) -> Optional[Any]:
    """Loads a YAML document with `yaml.safe_load`. Returns None when missing or invalid."""
    if not os.path.exists(filepath):
        logger.info(f"Configuration file not found at: {filepath}")
        return None

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Error decoding YAML from {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not parse the configuration file at {filepath}. Please check for syntax errors.", file=sys.stderr)
        return None
    except IOError as e:
        logger.error(f"Error reading file {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not read the file at {filepath}.", file=sys.stderr)
        return None


def save_json_file(filepath: str, data: Dict[str, Any]) -> bool:
    """
    Saves settings to `filepath` as plain JSON, creating the directory if needed.

    Returns:
        bool: True if saving was successful, False otherwise.
    """
    try:
        os.makedirs(os.path.dirname(filepath), exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, sort_keys=True)
        logger.info(f"Settings written to {filepath}")
        return True
    except IOError as e:
        logger.error(f"Error saving settings to {filepath}: {e}", exc_info=True)
        print(f"❌ Error: Could not write to the file at {filepath}.", file=sys.stderr)
        return False
    except TypeError as e:
        logger.error(f"Settings for {filepath} are not serializable: {e}", exc_info=True)
        print("❌ Error: The settings could not be converted to JSON.", file=sys.stderr)
        return False


def merge_configs(base, override):
    """ Helper function to recursively merge dictionaries. """
    merged = base.copy()
    for key, value in override.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(default_path: str = DEFAULT_SETTINGS_PATH, user_path: str = USER_SETTINGS_PATH) -> Dict[str, Any]:
    """
    Loads application settings from the bundled defaults and the user's overrides.
    The default_config.json file is mandatory for the application to start.
    """
    base_settings = load_jsonc_file(default_path)
    if base_settings is None:
        error_msg = f"CRITICAL ERROR: Default configuration file not found or failed to parse at '{default_path}'. Application cannot start."
        logger.critical(error_msg)
        raise FileNotFoundError(error_msg)

    logger.info(f"Successfully loaded base configuration from {default_path}")
    settings = base_settings

    user_settings = load_jsonc_file(user_path)
    if user_settings:
        settings = merge_configs(settings, user_settings)
        logger.info(f"Loaded and merged user configurations from {user_path}")
    else:
        logger.info(f"{user_path} not found or is invalid. No user configuration overrides applied.")
    return settings


def get_setting(settings: Dict[str, Any], key_path: str, default=None):
    """Reads a dotted key such as 'history.max_entries'."""
    current = settings
    for part in key_path.split('.'):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current
