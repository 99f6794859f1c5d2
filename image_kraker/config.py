"""
Configuration constants and run configuration for the image kraker.
"""
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .exceptions import ConfigurationError, CredentialError

# --- Kraken API ---
API_USER_STATUS_URL = "https://api.kraken.io/user_status"
API_UPLOAD_URL = "https://api.kraken.io/v1/upload"
API_TIMEOUT = 120  # seconds; uploads wait for the optimized result
USER_AGENT = "ImageKraker/1.0"

API_KEY_PATTERN = re.compile(r'^[a-f0-9]{32}$', re.IGNORECASE)
API_SECRET_PATTERN = re.compile(r'^[a-f0-9]{40}$', re.IGNORECASE)

# Prefixes of OptimizationResult.error_message
TRANSPORT_ERROR_PREFIX = "Transport error: "
SERVICE_ERROR_PREFIX = "Service error: "

# --- File Type Definitions ---
MIME_TYPES = {
    'gif': 'image/gif',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'svg': 'image/svg+xml',
}
TYPE_ALIASES = {'jpg': 'jpeg'}

EXT_TO_TYPE = {
    '.gif': 'gif',
    '.jpg': 'jpeg',
    '.jpeg': 'jpeg',
    '.jpe': 'jpeg',
    '.png': 'png',
    '.svg': 'svg',
}

# Derived size variants: "photo-150x150.jpg" belongs to "photo.jpg"
SIZE_VARIANT_PATTERN = re.compile(r'^(?P<stem>.+)-(?P<width>\d+)x(?P<height>\d+)$')

# --- Replace Sequence ---
TEMP_SUFFIX = ".kraked"
BACKUP_SUFFIX = ".org"

# --- Change Detection ---
COMPARE_METHODS = ('none', 'hash', 'timestamp')
HASH_CHUNK_SIZE = 64 * 1024  # 64 KB chunks for reading
DOWNLOAD_CHUNK_SIZE = 32 * 1024

# --- Persistence ---
DEFAULT_DB_NAME = "kraken_metadata.db"
LOG_FILE_NAME = "kraker.log"

DEFAULTS: Dict[str, Any] = {
    'lossy': False,
    'compare': 'hash',
    'types': 'gif, jpeg, png, svg',
    'limit': -1,
}


@dataclass(frozen=True)
class KrakerConfig:
    """Fully resolved configuration for one run."""
    api_key: str
    api_secret: str
    lossy: bool = False
    compare: str = 'hash'
    types: tuple = ('gif', 'jpeg', 'png', 'svg')
    limit: int = -1
    dry_run: bool = False


def parse_types(value: str) -> Optional[List[str]]:
    """
    Parses a comma/whitespace separated list of image types.
    Returns None if the list is empty or contains an unknown type.
    """
    types: List[str] = []
    for token in re.split(r'[\s,]+', value.strip()):
        if not token:
            continue
        token = TYPE_ALIASES.get(token.lower(), token.lower())
        if token not in MIME_TYPES:
            return None
        if token not in types:
            types.append(token)
    return types or None


def read_config_file(config_path: Optional[Path]) -> Dict[str, Any]:
    """Returns the `kraken:` section of a YAML config file (empty if absent)."""
    if not config_path:
        return {}
    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    section = data.get('kraken', {}) if isinstance(data, dict) else {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"`kraken` section of {config_path} must be a mapping.")
    return section


def load_config(cli: Mapping[str, Any], config_path: Optional[Path] = None) -> KrakerConfig:
    """
    Resolves the run configuration.

    Precedence: command-line flag > `kraken:` section of the YAML file > default.
    `cli` holds only the flags the user actually passed (None means unset).
    """
    file_cfg = read_config_file(config_path)

    def pick(key: str):
        if cli.get(key) is not None:
            return cli[key]
        return file_cfg.get(key)

    # Credentials: flags only count as a pair, same for the file
    if cli.get('api_key') is not None and cli.get('api_secret') is not None:
        api_key, api_secret = cli['api_key'], cli['api_secret']
    elif file_cfg.get('api-key') is not None and file_cfg.get('api-secret') is not None:
        api_key, api_secret = file_cfg['api-key'], file_cfg['api-secret']
    else:
        raise CredentialError("Please specify your Kraken API credentials.")

    api_key, api_secret = str(api_key).strip(), str(api_secret).strip()
    if not (API_KEY_PATTERN.match(api_key) and API_SECRET_PATTERN.match(api_secret)):
        raise CredentialError("Please specify valid Kraken API credentials.")

    # Limit
    limit = DEFAULTS['limit']
    raw_limit = pick('limit')
    if raw_limit is not None:
        try:
            limit = int(str(raw_limit).strip())
        except ValueError:
            raise ConfigurationError("Invalid `limit` value.") from None
        if limit != -1 and limit <= 0:
            raise ConfigurationError("Invalid `limit` value.")

    # Lossy
    lossy = DEFAULTS['lossy']
    raw_lossy = pick('lossy')
    if isinstance(raw_lossy, bool):
        lossy = raw_lossy
    elif raw_lossy is not None:
        logging.warning("Unknown `lossy` value. Using lossless compression.")

    # Comparison method
    if cli.get('all'):
        compare = 'none'
    else:
        compare = DEFAULTS['compare']
        raw_compare = pick('compare')
        if raw_compare is not None:
            compare = str(raw_compare).strip()
            if compare not in COMPARE_METHODS:
                raise ConfigurationError(
                    f"Unknown `compare` value. Valid values: {', '.join(COMPARE_METHODS)}"
                )

    # Types
    raw_types = pick('types')
    types = parse_types(str(raw_types) if raw_types is not None else DEFAULTS['types'])
    if types is None:
        raise ConfigurationError(
            f"Unknown `types` value. Valid values: {', '.join(MIME_TYPES)}"
        )

    return KrakerConfig(
        api_key=api_key,
        api_secret=api_secret,
        lossy=lossy,
        compare=compare,
        types=tuple(types),
        limit=limit,
        dry_run=bool(cli.get('dry_run')),
    )
