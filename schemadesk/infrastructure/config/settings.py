"""Configuration lookup for the schemadesk client.

Values come from ~/.schemadesk/config.yaml, a .env file and the process
environment. ``load_api_settings`` turns them into the typed settings the
API client is built from.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from dotenv import load_dotenv

from schemadesk.domain.models.api import RetryPolicy

logger = logging.getLogger(__name__)

# --- Defaults ---
DEFAULT_CONFIG_DIR = Path.home() / ".schemadesk"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_BASE_URL = "https://hzmbackendveritabani-production.up.railway.app/api/v1"
DEFAULT_HEALTH_PATH = "/health"
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_REQUESTS_PER_MINUTE = 60
DEFAULT_MAX_BURST = 10
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_MS = 1000
DEFAULT_BACKOFF = "linear"
DEFAULT_PROTECTED_ENDPOINTS = (r"^/projects/[^/]+/protection$",)
DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

# --- Loaded state ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None) -> None:
    """Reads ~/.schemadesk/config.yaml and the nearest .env file once per process.

    Later sources win: YAML values, then .env entries, then the real
    environment (which ``get_config`` checks on every lookup).

    Args:
        config_file: YAML file whose nested keys are flattened to dotted names.
        env_file: Explicit .env path; found by walking up from cwd when None.
    """
    global _config, _loaded
    if _loaded:
        return

    _config = {}

    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as handle:
                document = yaml.safe_load(handle)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Ignoring unreadable config file {config_file}: {e}")
        else:
            if isinstance(document, dict):
                _config.update(_flatten(document))
                logger.info(f"Read {len(_config)} settings from {config_file}")
            elif document is not None:
                logger.warning(f"Expected a mapping at the top of {config_file}, got {type(document).__name__}")
    else:
        logger.debug(f"No config file at {config_file}")

    # override=False keeps real environment variables ahead of .env entries
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path and load_dotenv(dotenv_path=dotenv_path, override=False):
        logger.info(f"Applied .env file {dotenv_path}")

    _loaded = True


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ('retry.max_retries')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def _coerce_env_value(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def get_config(key: str, default: Any = None) -> Any:
    """Looks up a dotted key such as 'retry.max_retries'.

    Test overrides come first, then the environment (the key upper-cased,
    with string values coerced to bool or number), then loaded YAML.
    """
    if key in _test_config:
        return _test_config[key]

    env_value = os.environ.get(key.upper())
    if env_value is not None:
        return _coerce_env_value(env_value)

    return _config.get(key, default)


def find_dotenv_path() -> Optional[Path]:
    """Returns the closest .env file in cwd or any parent, if there is one."""
    here = Path.cwd()
    for directory in (here, *here.parents):
        candidate = directory / ENV_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def set_config(key: str, value: Any) -> None:
    """Overrides a loaded setting for the rest of this process (CLI flags use this)."""
    logger.debug(f"Config override {key}={value!r}")
    _config[key] = value


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Installs overrides that beat every other source until cleared."""
    _test_config.update(config_dict)


def clear_test_config() -> None:
    _test_config.clear()


# --- Typed settings ---

@dataclass
class ApiSettings:
    """Settings the API client is constructed from."""
    base_url: str = DEFAULT_BASE_URL
    backup_urls: Tuple[str, ...] = ()
    health_path: str = DEFAULT_HEALTH_PATH
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    headers: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_HEADERS))
    rate_limit_enabled: bool = True
    requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE
    max_burst: int = DEFAULT_MAX_BURST
    retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(
        max_retries=DEFAULT_MAX_RETRIES,
        delay_ms=DEFAULT_RETRY_DELAY_MS,
        backoff=DEFAULT_BACKOFF,
    ))
    protected_endpoints: Tuple[str, ...] = DEFAULT_PROTECTED_ENDPOINTS


def _as_list(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        lowered = value.lower()
        if lowered in ("true", "1", "yes", "on"):
            return True
        if lowered in ("false", "0", "no", "off"):
            return False
        logger.warning(f"Unexpected boolean config value '{value}'. Using default {default}.")
        return default
    return bool(value)


def get_base_url() -> str:
    """Base URL of the API, without a trailing slash."""
    url = get_config('SCHEMADESK_BASE_URL') or get_config('api.base_url', DEFAULT_BASE_URL)
    return str(url).rstrip("/")


def get_backup_urls() -> List[str]:
    urls = get_config('SCHEMADESK_BACKUP_URLS') or get_config('api.backup_urls')
    return [u.rstrip("/") for u in _as_list(urls)]


def get_secret(*keys: str) -> Optional[str]:
    """Returns the first configured value among ``keys`` as an untouched string.

    Unlike ``get_config`` no bool or number coercion is applied, so values
    such as '007' or 'false' reach the server exactly as written.
    """
    for key in keys:
        if key in _test_config:
            value = _test_config[key]
        elif key.upper() in os.environ:
            value = os.environ[key.upper()]
        else:
            value = _config.get(key)
        if value is not None and value != "":
            return str(value)
    return None


def get_api_token() -> Optional[str]:
    """Bearer token for the API, if configured."""
    return get_secret('SCHEMADESK_API_TOKEN', 'auth.token')


def get_api_key_credentials() -> Optional[Tuple[str, str, str]]:
    """API key, user email and project password, if all three are configured."""
    api_key = get_secret('SCHEMADESK_API_KEY', 'auth.api_key')
    email = get_secret('SCHEMADESK_USER_EMAIL', 'auth.user_email')
    password = get_secret('SCHEMADESK_PROJECT_PASSWORD', 'auth.project_password')
    if api_key and email and password:
        return api_key, email, password
    return None


def load_api_settings() -> ApiSettings:
    """Builds ApiSettings from the loaded configuration layers."""
    load_configuration()

    backoff = str(get_config('retry.backoff', DEFAULT_BACKOFF)).lower()
    if backoff not in ("linear", "exponential"):
        logger.warning(f"Unknown retry backoff '{backoff}'. Falling back to '{DEFAULT_BACKOFF}'.")
        backoff = DEFAULT_BACKOFF

    protected = _as_list(get_config('auth.protected_endpoints')) or list(DEFAULT_PROTECTED_ENDPOINTS)

    settings = ApiSettings(
        base_url=get_base_url(),
        backup_urls=tuple(get_backup_urls()),
        health_path=str(get_config('api.health_path', DEFAULT_HEALTH_PATH)),
        timeout_ms=int(get_config('api.timeout_ms', DEFAULT_TIMEOUT_MS)),
        rate_limit_enabled=_as_bool(get_config('rate_limit.enabled'), True),
        requests_per_minute=int(get_config('rate_limit.requests_per_minute', DEFAULT_REQUESTS_PER_MINUTE)),
        max_burst=int(get_config('rate_limit.max_burst', DEFAULT_MAX_BURST)),
        retry=RetryPolicy(
            max_retries=int(get_config('retry.max_retries', DEFAULT_MAX_RETRIES)),
            delay_ms=int(get_config('retry.delay_ms', DEFAULT_RETRY_DELAY_MS)),
            backoff=backoff,
        ),
        protected_endpoints=tuple(protected),
    )
    logger.debug(f"API settings resolved: {settings}")
    return settings


# Load configuration when the module is imported
load_configuration()
