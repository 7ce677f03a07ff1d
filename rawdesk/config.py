"""
Configuration management for rawdesk
"""

import yaml
import os
import re
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Dict, Any, Optional, Union, Sequence
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

EXIFTOOL_ENV = "RAWDESK_EXIFTOOL"
DNG_CONVERTER_ENV = "RAWDESK_DNG_CONVERTER"
WORKSPACE_ENV = "RAWDESK_WORKSPACE"

EXIFTOOL_LOCATIONS = (
    "/opt/homebrew/bin/exiftool",
    "/usr/local/bin/exiftool",
    "/usr/bin/exiftool",
)

DNG_CONVERTER_LOCATIONS = (
    "/Applications/Adobe DNG Converter.app/Contents/MacOS/Adobe DNG Converter",
    r"C:\Program Files\Adobe\Adobe DNG Converter\Adobe DNG Converter.exe",
    r"C:\Program Files (x86)\Adobe\Adobe DNG Converter.exe",
)


def _expand_env_vars(obj: Union[Dict, Any]) -> Union[Dict, Any]:
    """
    Recursively expand environment variables in config values.
    Supports ${VAR_NAME} syntax.
    """
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        pattern = r'\$\{([^}]+)\}'
        def replace_var(match):
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))  # Return original if not found
        return re.sub(pattern, replace_var, obj)
    else:
        return obj


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Values missing from the file are filled in from the defaults.

    Args:
        config_path: Path to config file. If None, uses the packaged config.yaml

    Returns:
        Configuration dictionary
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}. Using defaults.")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from {config_path}")
        config = _expand_env_vars(config)
        return _merge(get_default_config(), config)
    except Exception as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        return get_default_config()


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration values

    Returns:
        Default configuration dictionary
    """
    return {
        'tools': {
            'exiftool': None,
            'dng_converter': None,
        },
        'workspace': {
            'root': None,  # <tmp>/rawdesk if not set
            'max_age_hours': 24,
        },
        'preview': {
            'edit_cache_size': 2560,
        },
        'batch': {
            'max_workers': 4,
        },
        'export': {
            'jpeg_quality': 90,
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'file': None,
        },
    }


def save_config(config: Dict[str, Any], config_path: Path) -> bool:
    """
    Save configuration to YAML file

    Args:
        config: Configuration dictionary to save
        config_path: Path where to save the config

    Returns:
        True if successful, False otherwise
    """
    try:
        with open(config_path, 'w') as f:
            yaml.dump(config, f, default_flow_style=False, indent=2)
        logger.info(f"Saved configuration to {config_path}")
        return True
    except Exception as e:
        logger.error(f"Failed to save config to {config_path}: {e}")
        return False


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation

    Args:
        config: Configuration dictionary
        key_path: Dot-separated key path (e.g., 'batch.max_workers')
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return default if value is None else value
    except (KeyError, TypeError):
        return default


def update_config_value(config: Dict[str, Any], key_path: str, value: Any) -> None:
    """
    Update a nested configuration value using dot notation

    Args:
        config: Configuration dictionary to update
        key_path: Dot-separated key path (e.g., 'batch.max_workers')
        value: New value to set
    """
    keys = key_path.split('.')
    current = config

    for key in keys[:-1]:
        if key not in current:
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value


def _is_set(value: Optional[str]) -> bool:
    # An unexpanded ${VAR} means the variable was not set
    return bool(value) and not str(value).startswith("${")


def resolve_tool_path(configured: Optional[str], env_var: str, command: str,
                      locations: Sequence[str] = ()) -> str:
    """
    Resolve an external tool executable.

    Resolution order:
    1) environment variable override
    2) configured path
    3) PATH lookup
    4) well-known install locations
    5) the bare command name (fails at call time with a clear error)
    """
    env_path = os.environ.get(env_var)
    if _is_set(env_path) and Path(env_path).exists():
        return env_path

    if _is_set(configured) and Path(configured).exists():
        return str(configured)

    which = shutil.which(command)
    if which:
        return which

    for cand in locations:
        if Path(cand).exists():
            return cand

    return command


def exiftool_path(config: Dict[str, Any]) -> str:
    """Resolve the ExifTool executable for this configuration."""
    return resolve_tool_path(
        get_config_value(config, 'tools.exiftool'),
        EXIFTOOL_ENV,
        "exiftool",
        EXIFTOOL_LOCATIONS,
    )


def dng_converter_path(config: Dict[str, Any]) -> str:
    """Resolve the DNG converter executable for this configuration."""
    command = "Adobe DNG Converter.exe" if sys.platform == "win32" else "dngconverter"
    return resolve_tool_path(
        get_config_value(config, 'tools.dng_converter'),
        DNG_CONVERTER_ENV,
        command,
        DNG_CONVERTER_LOCATIONS,
    )


def workspace_root(config: Dict[str, Any]) -> Path:
    """Directory holding per-photo workspaces."""
    env_root = os.environ.get(WORKSPACE_ENV)
    if _is_set(env_root):
        return Path(env_root)

    configured = get_config_value(config, 'workspace.root')
    if _is_set(configured):
        return Path(configured).expanduser()

    return Path(tempfile.gettempdir()) / "rawdesk"
