"""Application configuration.

AppConfig is a frozen dataclass, immutable after creation, IDE-autocompletable,
no string-key dict lookups. ``AppConfig.from_env()`` reads the process
environment through the typed ``env_*`` helpers below.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off", ""})


def _source(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def env_str(key: str, default: str | None = None, environ: Mapping[str, str] | None = None) -> str | None:
    """Return the variable as a string, or *default* when unset."""
    value = _source(environ).get(key)
    if value is None:
        return default
    return value


def env_bool(key: str, default: bool | None = None, environ: Mapping[str, str] | None = None) -> bool | None:
    """Return the variable as a bool.

    ``true``/``1``/``yes``/``on`` are True, ``false``/``0``/``no``/``off``
    and the empty string are False. Anything else yields *default*.
    """
    value = env_str(key, environ=environ)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    return default


def env_int(key: str, default: int | None = None, environ: Mapping[str, str] | None = None) -> int | None:
    """Return the variable as an int, or *default* when unset, empty, or not numeric."""
    value = env_str(key, environ=environ)
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def env_list(
    key: str,
    default: tuple[str, ...] = (),
    environ: Mapping[str, str] | None = None,
) -> tuple[str, ...]:
    """Return a comma-separated variable as a tuple of stripped, non-empty items."""
    value = env_str(key, environ=environ)
    if value is None:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have defaults. Override what you need::

        config = AppConfig(debug=True, use_route_cache=True)
    """

    env: str = "production"
    debug: bool = False

    # Logging
    log_level: str = "info"
    log_format: str = "text"  # "text" or "json"
    log_path: str | None = None  # None logs to stderr

    # Route cache
    route_cache_path: str = "storage/cache/routes.json"
    use_route_cache: bool = False

    # Rate limiting
    rate_limit_store: str = "memory"  # "memory" or "file"
    rate_limit_dir: str = "storage/ratelimit"
    rate_limit_requests: int = 60
    rate_limit_window: int = 60

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        """Build a config from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            env=env_str("APP_ENV", defaults.env, environ) or defaults.env,
            debug=bool(env_bool("APP_DEBUG", defaults.debug, environ)),
            log_level=(env_str("LOG_LEVEL", defaults.log_level, environ) or defaults.log_level).lower(),
            log_format=(env_str("LOG_FORMAT", defaults.log_format, environ) or defaults.log_format).lower(),
            log_path=env_str("LOG_PATH", defaults.log_path, environ) or None,
            route_cache_path=env_str("ROUTE_CACHE_PATH", defaults.route_cache_path, environ)
            or defaults.route_cache_path,
            use_route_cache=bool(env_bool("ROUTE_CACHE", defaults.use_route_cache, environ)),
            rate_limit_store=(
                env_str("RATE_LIMIT_STORE", defaults.rate_limit_store, environ)
                or defaults.rate_limit_store
            ).lower(),
            rate_limit_dir=env_str("RATE_LIMIT_DIR", defaults.rate_limit_dir, environ)
            or defaults.rate_limit_dir,
            rate_limit_requests=env_int("RATE_LIMIT_DEFAULT", defaults.rate_limit_requests, environ)
            or defaults.rate_limit_requests,
            rate_limit_window=env_int("RATE_LIMIT_WINDOW", defaults.rate_limit_window, environ)
            or defaults.rate_limit_window,
        )

    @property
    def is_production(self) -> bool:
        return self.env == "production"
