"""
Centralized environment variable configuration for couchsweep.

This module provides a unified way to read configuration from environment
variables with sensible defaults, used by the command-line runner.

Configuration priority (highest to lowest):
1. Command-line arguments
2. Environment variables
3. ~/.couchsweep_env file (or the file named by $COUCHSWEEP_ENV_FILE)
4. Default values
"""

import argparse
import os
from pathlib import Path
from typing import Dict, Any, Optional, List

ENV_FILE_NAME = '.couchsweep_env'

# Cache for .couchsweep_env file contents
_env_file_cache: Optional[Dict[str, str]] = None


def _env_file_path() -> Path:
    return Path(os.environ.get('COUCHSWEEP_ENV_FILE', str(Path.home() / ENV_FILE_NAME)))


def _load_env_file() -> Dict[str, str]:
    """
    Load configuration from the ~/.couchsweep_env file.

    This file uses VAR=value syntax (compatible with shell source but not exported).
    We parse it to provide fallback values when environment variables aren't set.

    Returns:
        Dictionary of key-value pairs from the file
    """
    global _env_file_cache
    if _env_file_cache is not None:
        return _env_file_cache

    _env_file_cache = {}
    env_path = _env_file_path()

    if env_path.exists():
        try:
            with open(env_path) as f:
                for line in f:
                    line = line.strip()
                    # Skip comments and empty lines
                    if not line or line.startswith('#'):
                        continue
                    if '=' in line:
                        key, _, value = line.partition('=')
                        key = key.strip()
                        value = value.strip()
                        # Remove surrounding quotes if present
                        if (value.startswith('"') and value.endswith('"')) or \
                           (value.startswith("'") and value.endswith("'")):
                            value = value[1:-1]
                        _env_file_cache[key] = value
        except (IOError, OSError):
            pass  # File not readable, use defaults

    return _env_file_cache


def reset_env_cache() -> None:
    """Forget the parsed env file so the next lookup reads it again."""
    global _env_file_cache
    _env_file_cache = None


def _get_env(key: str, default: str = '') -> str:
    """
    Get environment variable with fallback to the .couchsweep_env file.

    Args:
        key: Environment variable name
        default: Default value if not found anywhere

    Returns:
        Value from environment, .couchsweep_env file, or default
    """
    value = os.environ.get(key)
    if value is not None:
        return value

    env_file = _load_env_file()
    if key in env_file:
        return env_file[key]

    return default


def _parse_optional_int(value: Optional[str]) -> Optional[int]:
    """Parse an optional integer from string, returning None if empty or invalid."""
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_int(value: str, default: int) -> int:
    """Parse an integer from string, returning default if empty or invalid."""
    try:
        return int(value)
    except ValueError:
        return default


def _parse_float(value: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        return default


def _parse_optional_str(value: Optional[str]) -> Optional[str]:
    return value or None


def _parse_bool(value: str) -> bool:
    return value.lower() in ('1', 'true', 'yes')


def get_env_config(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Get complete configuration from command-line args, environment variables, or defaults.

    Arguments follow the pattern: --config-key for config['config_key']
    (underscores in keys become dashes in argument names)

    Args:
        argv: Argument list to parse (default: sys.argv[1:])

    Returns:
        Dictionary of configuration values
    """
    base_config = {
        # CouchDB connection settings
        'couchdb_url': _get_env('COUCHDB_URL', 'http://localhost:5984'),
        'couchdb_username': _get_env('COUCHDB_USER', ''),
        'couchdb_password': _get_env('COUCHDB_PASSWORD', ''),
        'couchdb_database': _get_env('COUCHDB_DATABASE', ''),
        'view': _get_env('COUCHSWEEP_VIEW', '_all_docs'),

        # Paging settings
        'page_size': _parse_int(_get_env('PAGE_SIZE', ''), 1000),
        'num_pages': _parse_optional_int(_get_env('NUM_PAGES', '')),
        'interval': _parse_float(_get_env('INTERVAL', ''), 0.0),
        'skip': _parse_int(_get_env('SKIP', ''), 0),
        'start_key': _parse_optional_str(_get_env('START_KEY', '')),
        'end_key': _parse_optional_str(_get_env('END_KEY', '')),

        # Output settings
        'log_file': _get_env('LOG_FILE', 'couchsweep.log'),
        'audit_file': _get_env('AUDIT_FILE', 'couchsweep-audit.json'),
        'verbosity': _parse_int(_get_env('VERBOSITY', ''), 1),

        'dry_run': _parse_bool(_get_env('DRY_RUN', '')),
    }

    parser = argparse.ArgumentParser(add_help=False)  # Don't add -h/--help to avoid conflicts

    # String arguments
    for key in [
        'couchdb_url', 'couchdb_username', 'couchdb_password', 'couchdb_database',
        'view', 'start_key', 'end_key', 'log_file', 'audit_file',
    ]:
        arg_name = '--' + key.replace('_', '-')
        parser.add_argument(arg_name, type=str, default=None, dest=key)

    # Integer arguments
    for key in ['page_size', 'num_pages', 'skip', 'verbosity']:
        arg_name = '--' + key.replace('_', '-')
        parser.add_argument(arg_name, type=int, default=None, dest=key)

    parser.add_argument('--interval', type=float, default=None, dest='interval',
                        help='Seconds to wait between pages')
    parser.add_argument('--dry-run', action='store_true', default=None, dest='dry_run',
                        help='Run tasks without writing any changes back')

    # Parse known args (ignore unknown args so the CLI can add its own)
    args, _ = parser.parse_known_args(argv)

    for key, value in vars(args).items():
        if value is not None:
            base_config[key] = value

    return base_config


def get_couchdb_config(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Get CouchDB-specific configuration.

    Args:
        argv: Argument list to parse (default: sys.argv[1:])

    Returns:
        Dictionary with CouchDB connection settings
    """
    config = get_env_config(argv)
    return {
        'url': config['couchdb_url'],
        'username': config['couchdb_username'],
        'password': config['couchdb_password'],
        'database': config['couchdb_database'],
    }
