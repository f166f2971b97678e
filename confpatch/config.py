"""
Configuration — loads settings from .confpatch.yaml, environment variables,
and built-in defaults (in that priority order: env > YAML > defaults).
"""

import os

import yaml


_DEFAULTS = {
    "context_lines": 3,
    "lookahead_window": 10,
    "backup_suffix": ".backup",
    "dry_run_default": True,
    "block_on_syntax_error": True,
    "lua_extensions": [".lua"],
    "record_metrics": False,
    "metrics_dir": ".confpatch",
    "log_dir": ".confpatch/logs",
    "allowed_base": None,
}

# Config file search locations
_CONFIG_FILENAMES = [".confpatch.yaml", ".confpatch.yml"]


def _find_config_file(explicit_path: str | None = None) -> str | None:
    """Find the config file. Checks explicit path, CWD, then user home."""
    if explicit_path:
        if os.path.isfile(explicit_path):
            return explicit_path
        return None

    search_dirs = [os.getcwd(), os.path.expanduser("~")]
    for d in search_dirs:
        for name in _CONFIG_FILENAMES:
            path = os.path.join(d, name)
            if os.path.isfile(path):
                return path
    return None


def _load_yaml(path: str) -> dict:
    """Load YAML file, returns empty dict on failure."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, yaml.YAMLError):
        return {}


class Config:
    """Engine configuration.

    Settings are resolved in priority order:
    1. Environment variables (``CONFPATCH_*``)
    2. .confpatch.yaml config file
    3. Built-in defaults
    """

    def __init__(self, yaml_data: dict | None = None):
        yd = yaml_data or {}

        # Helper: env var > yaml > default
        def _get(env_key: str, yaml_key: str, default, cast=str):
            env_val = os.getenv(env_key)
            if env_val is not None:
                return cast(env_val)
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return cast(yaml_val)
            return default

        def _get_bool(env_key: str, yaml_key: str, default: bool) -> bool:
            env_val = os.getenv(env_key)
            if env_val is not None:
                return env_val.lower() == "true"
            yaml_val = yd.get(yaml_key)
            if yaml_val is not None:
                return bool(yaml_val)
            return default

        self.CONTEXT_LINES = _get("CONFPATCH_CONTEXT_LINES", "context_lines",
                                  _DEFAULTS["context_lines"], cast=int)
        self.LOOKAHEAD_WINDOW = _get("CONFPATCH_LOOKAHEAD_WINDOW",
                                     "lookahead_window",
                                     _DEFAULTS["lookahead_window"], cast=int)

        self.BACKUP_SUFFIX = _get("CONFPATCH_BACKUP_SUFFIX", "backup_suffix",
                                  _DEFAULTS["backup_suffix"])
        self.DRY_RUN_DEFAULT = _get_bool("CONFPATCH_DRY_RUN", "dry_run_default",
                                         _DEFAULTS["dry_run_default"])
        self.BLOCK_ON_SYNTAX_ERROR = _get_bool(
            "CONFPATCH_BLOCK_ON_SYNTAX_ERROR", "block_on_syntax_error",
            _DEFAULTS["block_on_syntax_error"])

        # File extensions handled by the Lua grammar
        self.LUA_EXTENSIONS: list[str] = yd.get("lua_extensions",
                                                _DEFAULTS["lua_extensions"])
        if not isinstance(self.LUA_EXTENSIONS, list):
            self.LUA_EXTENSIONS = list(_DEFAULTS["lua_extensions"])
        self.LUA_EXTENSIONS = [str(ext).lower() for ext in self.LUA_EXTENSIONS]

        # Apply metrics log
        self.RECORD_METRICS = _get_bool("CONFPATCH_RECORD_METRICS",
                                        "record_metrics",
                                        _DEFAULTS["record_metrics"])
        self.METRICS_DIR = _get("CONFPATCH_METRICS_DIR", "metrics_dir",
                                _DEFAULTS["metrics_dir"])

        self.LOG_DIR = _get("CONFPATCH_LOG_DIR", "log_dir", _DEFAULTS["log_dir"])

        # Writes outside this directory are refused; None allows any path
        self.ALLOWED_BASE: str | None = _get("CONFPATCH_ALLOWED_BASE",
                                               "allowed_base",
                                               _DEFAULTS["allowed_base"]) or None

    def is_lua_path(self, path: str) -> bool:
        """Return True when *path* should be handled by the Lua grammar."""
        ext = os.path.splitext(path)[1].lower()
        return ext in self.LUA_EXTENSIONS

    @classmethod
    def load(cls, config_path: str | None = None) -> "Config":
        """Load config from YAML file (if found) + env vars + defaults."""
        path = _find_config_file(config_path)
        yaml_data = _load_yaml(path) if path else {}
        return cls(yaml_data)
