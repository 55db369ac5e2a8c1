import logging
import os
from pathlib import Path
from dotenv import load_dotenv

LOGGER_NAME = "chess_repertoire"


def get_project_root() -> Path:
    """Returns the project root directory (where pyproject.toml lives)."""
    # Navigate up from chess_repertoire/utils.py to project root
    return Path(__file__).parent.parent


def get_setting(name: str, default: str = "") -> str:
    """Reads a setting from the environment (or a .env file)."""
    load_dotenv()
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def get_int_setting(name: str, default: int) -> int:
    """
    Reads an integer setting. Falls back to the default on malformed values.

    Args:
        name (str): The name of the environment variable.
        default (int): Value used when the variable is missing or not an integer.

    Returns:
        int: The parsed value.
    """
    raw = get_setting(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(LOGGER_NAME).warning(f"Setting {name}={raw!r} is not an integer, using {default}.")
        return default


def get_data_file() -> str:
    """Returns the path of the JSON file backing the repertoire store."""
    return get_setting("REPERTOIRE_DATA_FILE", str(get_project_root() / "data" / "repertoire.json"))


def setup_logging():
    """Configures the logging format and level based on environment variables."""
    load_dotenv()
    log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger(LOGGER_NAME)
