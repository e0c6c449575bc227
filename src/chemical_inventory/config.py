import os
from dataclasses import dataclass
from typing import Dict, Optional

from dotenv import dotenv_values

from .logging import get_logger
from .paths import default_store_path, expand_abs

log = get_logger("config")

DEFAULT_API_URL = "https://api.jsonbin.io/v3/b/68918782f7e7a370d1f4029d"
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_CONNECT_TIMEOUT = 3.0


@dataclass
class InventoryConfig:
    api_url: str
    submit_url: str
    api_key: Optional[str]
    store_path: str
    fetch_timeout: float
    connect_timeout: float


def _find_upwards(start_dir: str, filename: str) -> Optional[str]:
    """Return first matching file found when walking up from start_dir."""
    d = os.path.abspath(start_dir or ".")
    while True:
        candidate = os.path.join(d, filename)
        if os.path.isfile(candidate):
            return candidate
        parent = os.path.dirname(d)
        if parent == d:
            return None
        d = parent


def _read_dotenv(dotenv_dir: str) -> Dict[str, str]:
    """Read the nearest .env without mutating the process environment."""
    path = _find_upwards(dotenv_dir, ".env")
    if not path:
        log.debug(f"No .env found starting from: {os.path.abspath(dotenv_dir)}")
        return {}
    values = {k: v for k, v in dotenv_values(path).items() if v is not None}
    log.debug(f"Loaded {len(values)} key(s) from .env at {path}")
    return values


def _lookup(name: str, env: Dict[str, str]) -> Optional[str]:
    v = os.environ.get(name)
    if v is None:
        v = env.get(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


def _float_or(value: Optional[str], default: float, name: str) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        log.warning(f"{name}={value!r} is not a number; using {default}")
        return default
    if parsed <= 0:
        log.warning(f"{name} must be positive; using {default}")
        return default
    return parsed


def load_settings(dotenv_dir: Optional[str] = None) -> InventoryConfig:
    """Resolve configuration from the environment, then the nearest .env file."""
    start = dotenv_dir or os.getcwd()
    env = _read_dotenv(start)

    api_url = _lookup("CHEMICAL_API_URL", env) or DEFAULT_API_URL
    submit_url = _lookup("CHEMICAL_SUBMIT_URL", env) or api_url
    store_path = _lookup("CHEMICAL_STORE_PATH", env)
    store_path = expand_abs(store_path) if store_path else default_store_path(start)

    config = InventoryConfig(
        api_url=api_url,
        submit_url=submit_url,
        api_key=_lookup("CHEMICAL_API_KEY", env),
        store_path=store_path,
        fetch_timeout=_float_or(_lookup("CHEMICAL_FETCH_TIMEOUT", env), DEFAULT_FETCH_TIMEOUT, "CHEMICAL_FETCH_TIMEOUT"),
        connect_timeout=_float_or(_lookup("CHEMICAL_CONNECT_TIMEOUT", env), DEFAULT_CONNECT_TIMEOUT, "CHEMICAL_CONNECT_TIMEOUT"),
    )
    log.debug(f"API URL    : {config.api_url}")
    log.debug(f"Submit URL : {config.submit_url}")
    log.debug(f"Store path : {config.store_path}")
    return config
