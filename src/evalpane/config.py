"""Configuration loading for evalpane.

Settings live in ~/.evalpane/config.json; a few environment variables
override the file. A missing file means defaults.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from evalpane.errors import ConfigurationError
from evalpane.models import EvalPaneConfig

log = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".evalpane"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Environment variable -> config field. Values are coerced by the model.
ENV_OVERRIDES = {
    "EVALPANE_RAW": "raw",
    "EVALPANE_TIMEOUT": "timeout_seconds",
    "EVALPANE_DEBOUNCE": "debounce_seconds",
}


def _read_config_file(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return data


def load_config(path: Path | None = None) -> EvalPaneConfig:
    """Load configuration from disk and the environment."""
    path = path if path is not None else CONFIG_FILE
    data: dict = {}
    if path.exists():
        data = _read_config_file(path)
        log.debug("loaded config from %s", path)

    for env_key, field_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_key, "").strip()
        if value:
            data[field_name] = value
            log.debug("%s overrides %s", env_key, field_name)

    try:
        return EvalPaneConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e
