from __future__ import annotations

"""Configuration loading and validation.

This module loads YAML configuration, applies defaults section by section,
and replaces unsupported values with safe ones (logging a warning).
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ..logging_config import get_logger

logger = get_logger("config")

ALLOWED_QUESTION_COUNTS = {10, 15, 20, 25, 30}
ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class ConfigError(Exception):
    pass


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        return _load_yaml(Path(path))
    return _load_yaml(Path(__file__).with_name("defaults.yml"))


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Environment overrides: MATHPRACTICE_DATA_DIR, MATHPRACTICE_SHEETS_URL.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    for section in ("storage", "test", "practice", "progress", "sheets", "logging"):
        if not isinstance(cfg.get(section), dict):
            cfg[section] = {}

    storage = cfg["storage"]
    test = cfg["test"]
    practice = cfg["practice"]
    progress = cfg["progress"]
    sheets = cfg["sheets"]
    log_cfg = cfg["logging"]

    storage.setdefault("data_dir", "~/.mathpractice")
    storage.setdefault("namespace", "math-grade5")

    test.setdefault("default_question_count", 15)
    test.setdefault("question_count_options", [10, 15, 20, 25, 30])
    test.setdefault("autosave_every_s", 10)
    test.setdefault("overfetch", 5)

    practice.setdefault("questions_per_session", 10)
    practice.setdefault("quick_questions", 20)
    practice.setdefault("quick_time_limit_s", 300)
    practice.setdefault("quick_time_options", [120, 180, 300, 600])

    progress.setdefault("weak_score_threshold", 5.0)

    sheets.setdefault("script_url", "")
    sheets.setdefault("timeout_s", 10)

    log_cfg.setdefault("level", "WARNING")

    # Environment overrides
    env_dir = os.environ.get("MATHPRACTICE_DATA_DIR")
    if env_dir:
        storage["data_dir"] = env_dir
    env_url = os.environ.get("MATHPRACTICE_SHEETS_URL")
    if env_url:
        sheets["script_url"] = env_url

    # Value validations
    options = [int(n) for n in test.get("question_count_options") or [] if int(n) in ALLOWED_QUESTION_COUNTS]
    if not options:
        logger.warning("No supported question_count_options, using 10/15/20/25/30.")
        options = sorted(ALLOWED_QUESTION_COUNTS)
    test["question_count_options"] = options

    count = int(test.get("default_question_count", 15))
    if count not in options:
        logger.warning("Unsupported default_question_count '%s', using %s.", count, options[0])
        count = options[0]
    test["default_question_count"] = count

    for key, fallback in (("autosave_every_s", 10), ("overfetch", 5)):
        try:
            val = int(test.get(key, fallback))
        except (TypeError, ValueError):
            val = -1
        if val < (1 if key == "autosave_every_s" else 0):
            logger.warning("Invalid test.%s '%s', using %s.", key, test.get(key), fallback)
            val = fallback
        test[key] = val

    if int(practice.get("questions_per_session", 10)) < 1:
        logger.warning("practice.questions_per_session must be >= 1, using 10.")
        practice["questions_per_session"] = 10
    if int(practice.get("quick_time_limit_s", 300)) < 1:
        logger.warning("practice.quick_time_limit_s must be >= 1, using 300.")
        practice["quick_time_limit_s"] = 300

    try:
        threshold = float(progress.get("weak_score_threshold", 5.0))
    except (TypeError, ValueError):
        threshold = -1.0
    if not (0.0 <= threshold <= 10.0):
        logger.warning("Unsupported weak_score_threshold '%s', using 5.0.", progress.get("weak_score_threshold"))
        threshold = 5.0
    progress["weak_score_threshold"] = threshold

    sheets["script_url"] = str(sheets.get("script_url") or "").strip()
    try:
        sheets["timeout_s"] = float(sheets.get("timeout_s", 10))
    except (TypeError, ValueError):
        logger.warning("Invalid sheets.timeout_s '%s', using 10.", sheets.get("timeout_s"))
        sheets["timeout_s"] = 10.0

    level = str(log_cfg.get("level", "WARNING")).upper()
    if level not in ALLOWED_LOG_LEVELS:
        logger.warning("Unsupported logging level '%s', using WARNING.", level)
        level = "WARNING"
    log_cfg["level"] = level

    return cfg
