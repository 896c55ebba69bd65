"""
Configuration management for MediaDrop
"""

import yaml
import os
import re
import copy
from pathlib import Path
from typing import Dict, Any, Optional, Union
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"


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
        # Replace ${VAR_NAME} with environment variable values
        pattern = r'\$\{([^}]+)\}'
        def replace_var(match):
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))  # Return original if not found
        return re.sub(pattern, replace_var, obj)
    else:
        return obj


def merge_config(base: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merge ``overrides`` on top of ``base`` without mutating either.

    Nested dictionaries are merged key by key; any other value replaces the
    base value.
    """
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to config file. If None, uses MEDIADROP_CONFIG or
            the packaged config.yaml

    Returns:
        Configuration dictionary merged over the defaults
    """
    if config_path is None:
        config_path = os.getenv('MEDIADROP_CONFIG') or DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    if not config_path.exists():
        logger.warning(f"Config file not found: {config_path}. Using defaults.")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        return get_default_config()

    logger.info(f"Loaded configuration from {config_path}")
    # Expand environment variables in config values
    config = _expand_env_vars(config)
    return merge_config(get_default_config(), config)


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration values

    Returns:
        Default configuration dictionary
    """
    return {
        'database': {
            'url': 'sqlite:///mediadrop.db',
            'echo': False,
            'auto_init': True,
            'connection_pool': {
                'pool_size': 5,
                'max_overflow': 10,
                'pool_recycle': 3600,
            },
        },
        'storage': {
            'root': './media',
            'write_timeout': 120,  # seconds per file
            'chunk_size': 1024 * 1024,
        },
        'uploads': {
            'max_filesize_mb': 50,
            'allowed_extensions': [
                'jpg', 'jpeg', 'png', 'gif', 'webp', 'heic',
                'mp4', 'mov', 'avi', 'webm',
            ],
            'require_contributor_name': True,
        },
        'directories': {
            'enabled': True,
            'tree_id': 'media_directories',
            'max_attempts': 3,
        },
        'tracking': {
            'failure_policy': 'rollback',  # 'rollback' | 'keep'
        },
        'notifications': {
            'enabled': True,
            'window_seconds': 60,
        },
        'thumbnails': {
            'enabled': True,
            'directory': '.thumbnails',  # relative to storage.root
            'size': 300,
            'quality': 85,
        },
        'auth': {
            'token_expiry_hours': 24,
            'anonymous_permissions': ['upload', 'view_own', 'delete_own', 'create_folder'],
            'authenticated_permissions': ['upload', 'view_own', 'delete_own', 'create_folder'],
        },
        'api': {
            'cors_origins': ['http://localhost:3000', 'http://localhost:5000'],
            'max_content_length_mb': 512,
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'file': None,
        },
    }


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation

    Args:
        config: Configuration dictionary
        key_path: Dot-separated key path (e.g., 'storage.root')
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


__all__ = [
    'load_config',
    'get_default_config',
    'merge_config',
    'get_config_value',
    'DEFAULT_CONFIG_PATH',
]
