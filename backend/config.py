"""Config loading for AskPage."""

import json
import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.json"

DEFAULTS = {
    "backend_host": "127.0.0.1",
    "backend_port": 5000,
    "answer_service_url": "http://localhost:5000",
    "answer_timeout": 15.0,
    "health_interval": 30.0,
    "health_initial_delay": 2.0,
    "settle_delay": 1.0,
    "selection_debounce": 0.5,
    "claude_bin": "/usr/local/bin/claude",
    "claude_timeout": 60,
    "fetch_timeout": 15,
    "log_level": "INFO",
}


def load_config(path: str | Path | None = None) -> dict:
    """Read the JSON config and merge it over DEFAULTS.

    A missing file is not an error; the defaults are used as-is.
    """
    path = Path(path or os.environ.get("ASKPAGE_CONFIG") or CONFIG_PATH)
    cfg = dict(DEFAULTS)
    if not path.exists():
        return cfg
    cfg.update(json.loads(path.read_text()))
    log.debug("Loaded config from %s", path)
    return cfg


config = load_config()
