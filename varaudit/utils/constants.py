"""Centralized constants for varaudit.

Single source of truth for paths and environment variable names used across
modules.
"""

from pathlib import Path

# ============================================================================
# OUTPUT DIRECTORIES
# ============================================================================

# Per-project working directory (config file, error log)
VA_DIR = Path("./.varaudit")

CONFIG_FILE = VA_DIR / "config.json"
ERROR_LOG_FILE = VA_DIR / "error.log"

# ============================================================================
# ENVIRONMENT VARIABLES
# ============================================================================

ENV_PREFIX = "VARAUDIT"
ENV_LOG_LEVEL = "VARAUDIT_LOG_LEVEL"
ENV_LOG_JSON = "VARAUDIT_LOG_JSON"
ENV_LOG_FILE = "VARAUDIT_LOG_FILE"
ENV_REQUEST_ID = "VARAUDIT_REQUEST_ID"

# ============================================================================
# SOURCE FILES
# ============================================================================

DEFAULT_EXTENSIONS = (".php",)
