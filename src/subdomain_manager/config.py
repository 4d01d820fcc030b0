"""Configuration loading for subdomain-manager.

Values are resolved in this order:
- process environment
- `.env` (local override layer, optional)
- `.env.defaults` (catalog of keys and default values, version-controlled)

The env files are looked up in the repository root and, if different, the
current working directory.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict

from .result import ConfigurationError

DEFAULT_CLOUDFLARE_API_URL = 'https://api.cloudflare.com/client/v4'
DEFAULT_TARGET_HOST = '192.168.155.122'
DEFAULT_MAX_CONTENT_LENGTH = 1024 * 1024

TRUE_VALUES = ('true', '1', 'yes')


@lru_cache(maxsize=1)
def load_env_files() -> Dict[str, str]:
    """Merge `.env.defaults` and `.env` key/value pairs.

    Returns an empty dict when neither file exists (production deployments
    supply everything through the environment).
    """
    dirs: list[Path] = []
    repo_root = Path(__file__).resolve().parent.parent.parent
    dirs.append(repo_root)

    try:
        cwd = Path.cwd()
        if cwd.resolve() != repo_root.resolve():
            dirs.append(cwd)
    except (OSError, FileNotFoundError):
        pass

    merged: Dict[str, str] = {}
    for filename in ('.env.defaults', '.env'):
        for directory in dirs:
            path = directory / filename
            if path.exists():
                merged.update(_parse_env_file(path))
    return merged


def get_value(key: str, fallback: str | None = None) -> str | None:
    """Return a config value from the environment, then the env files."""
    value = os.environ.get(key)
    if value is not None and value != '':
        return value
    return load_env_files().get(key, fallback)


def get_bool(key: str, fallback: bool = False) -> bool:
    value = get_value(key)
    if value is None:
        return fallback
    return value.strip().lower() in TRUE_VALUES


def require_value(key: str) -> str:
    """Return a config value or raise ConfigurationError if it is missing."""
    value = get_value(key)
    if not value:
        raise ConfigurationError(f"Required configuration '{key}' is not set")
    return value


def _parse_env_file(env_path: Path) -> Dict[str, str]:
    values: Dict[str, str] = {}
    with env_path.open('r', encoding='utf-8') as handle:
        for line in handle:
            line = line.strip()
            if not line or line.startswith('#') or '=' not in line:
                continue
            key, value = line.split('=', 1)
            value = value.strip()
            if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
                value = value[1:-1]
            values[key.strip()] = value
    return values


@dataclass
class AppConfig:
    """Validated application configuration."""

    cloudflare_api_token: str
    cloudflare_zone_id: str
    npm_api_url: str
    npm_email: str
    npm_password: str
    cloudflare_api_url: str = DEFAULT_CLOUDFLARE_API_URL
    target_host: str = DEFAULT_TARGET_HOST
    http_timeout: float = 30.0
    database_path: str = ''
    audit_log_file: str = ''
    ratelimit_enabled: bool = True
    max_content_length: int = DEFAULT_MAX_CONTENT_LENGTH

    @property
    def database_uri(self) -> str:
        if self.database_path == ':memory:':
            return 'sqlite:///:memory:'
        return f'sqlite:///{self.database_path}'

    def dns_backend_config(self) -> Dict[str, object]:
        return {
            'api_token': self.cloudflare_api_token,
            'zone_id': self.cloudflare_zone_id,
            'api_url': self.cloudflare_api_url,
            'timeout': self.http_timeout,
        }


def get_db_path() -> str:
    """Database file path: SUBDOMAIN_MANAGER_DB_PATH or ./subdomain_manager.db."""
    db_path = get_value('SUBDOMAIN_MANAGER_DB_PATH')
    if db_path:
        return db_path
    return os.path.join(os.getcwd(), 'subdomain_manager.db')


def load_config() -> AppConfig:
    """Build AppConfig from the environment.

    Raises:
        ConfigurationError: If DNS or proxy manager credentials are missing
    """
    try:
        http_timeout = float(get_value('HTTP_TIMEOUT', '30'))
    except ValueError:
        raise ConfigurationError("HTTP_TIMEOUT must be a number of seconds")

    try:
        max_content_length = int(get_value('MAX_CONTENT_LENGTH', str(DEFAULT_MAX_CONTENT_LENGTH)))
    except ValueError:
        raise ConfigurationError("MAX_CONTENT_LENGTH must be a number of bytes")

    return AppConfig(
        cloudflare_api_token=require_value('CLOUDFLARE_API_TOKEN'),
        cloudflare_zone_id=require_value('CLOUDFLARE_ZONE_ID'),
        npm_api_url=require_value('NPM_API_URL'),
        npm_email=require_value('NPM_EMAIL'),
        npm_password=require_value('NPM_PASSWORD'),
        cloudflare_api_url=get_value('CLOUDFLARE_API_URL', DEFAULT_CLOUDFLARE_API_URL),
        target_host=get_value('HOST_SERVER_IP', DEFAULT_TARGET_HOST),
        http_timeout=http_timeout,
        database_path=get_db_path(),
        audit_log_file=get_value('AUDIT_LOG_FILE', '') or '',
        ratelimit_enabled=get_bool('RATELIMIT_ENABLED', True),
        max_content_length=max_content_length,
    )
