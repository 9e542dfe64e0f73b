"""Runtime configuration for varaudit - centralized configuration management."""

import copy
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from varaudit.utils.constants import CONFIG_FILE, DEFAULT_EXTENSIONS, ENV_PREFIX
from varaudit.utils.logging import logger

DEFAULTS = {
    "lint": {
        "report_level": "notice",
        "check_global_scope": True,
        "global_vars": [],
        "init_by_reference": [],
        "function_signatures": [],
        "extensions": list(DEFAULT_EXTENSIONS),
        "exclude": [],
        "color": "auto",
    },
}

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"expected one of {', '.join(_TRUE_VALUES + _FALSE_VALUES)}")


def load_runtime_config(root: str = ".", config_path: str | None = None) -> dict[str, Any]:
    """
    Load runtime configuration from .varaudit/config.json and environment variables.

    Config priority (highest to lowest):
    1. Environment variables (VARAUDIT_* prefixed)
    2. The config file (config_path, or .varaudit/config.json under root)
    3. Built-in defaults

    Command line options are applied on top by the caller.

    Args:
        root: Root directory to look for config file
        config_path: Explicit config file, overrides the default location

    Returns:
        Configuration dictionary with merged values
    """
    cfg = copy.deepcopy(DEFAULTS)

    path = Path(config_path) if config_path else Path(root) / CONFIG_FILE
    try:
        if path.exists():
            with open(path, encoding="utf-8") as f:
                user = json.load(f)

            if isinstance(user, dict):
                for section in cfg:
                    if section in user and isinstance(user[section], dict):
                        for key, value in user[section].items():
                            if key in cfg[section] and isinstance(value, type(cfg[section][key])):
                                cfg[section][key] = value
                            else:
                                logger.warning(
                                    "Ignoring config key {section}.{key} in {path}",
                                    section=section,
                                    key=key,
                                    path=str(path),
                                )
        elif config_path:
            logger.warning("Config file {path} not found, using defaults", path=str(path))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Could not load config file from {path}: {err}", path=str(path), err=e)
        logger.info("Continuing with default configuration")

    for section in cfg:
        for key in cfg[section]:
            env_var = f"{ENV_PREFIX}_{section.upper()}_{key.upper()}"
            if env_var in os.environ:
                value = os.environ[env_var]
                try:
                    default_value = cfg[section][key]
                    if isinstance(default_value, bool):
                        cfg[section][key] = _parse_bool(value)
                    elif isinstance(default_value, list):
                        # signatures contain commas, so lists are ';'-separated
                        cfg[section][key] = [v.strip() for v in value.split(";") if v.strip()]
                    else:
                        cfg[section][key] = value
                except ValueError as e:
                    logger.warning(
                        "Invalid value for environment variable {env}: '{value}' - {err}",
                        env=env_var,
                        value=value,
                        err=e,
                    )
                    logger.info("Using default value: {default}", default=cfg[section][key])

    return cfg


@dataclass
class LintConfig:
    """Typed view of the `lint` section handed to analyzers."""

    report_level: str = "notice"
    check_global_scope: bool = True
    global_vars: list[str] = field(default_factory=list)
    init_by_reference: list[str] = field(default_factory=list)
    function_signatures: list[str] = field(default_factory=list)
    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude: list[str] = field(default_factory=list)
    color: str = "auto"

    @classmethod
    def from_runtime(cls, cfg: dict[str, Any]) -> "LintConfig":
        section = cfg.get("lint", {})
        return cls(**{key: copy.copy(value) for key, value in section.items() if key in DEFAULTS["lint"]})
