"""Rate limit stores."""

from leanapi.config import AppConfig
from leanapi.errors import ConfigurationError
from leanapi.ratelimit.file_store import FileStore
from leanapi.ratelimit.store import HitResult, MemoryStore, RateLimitStore


def create_store(config: AppConfig) -> RateLimitStore:
    """Build the store named by ``config.rate_limit_store`` (``memory`` or ``file``)."""
    match config.rate_limit_store:
        case "memory":
            return MemoryStore()
        case "file":
            return FileStore(config.rate_limit_dir)
        case other:
            msg = f"Unknown rate limit store {other!r}; expected 'memory' or 'file'"
            raise ConfigurationError(msg)


__all__ = ["FileStore", "HitResult", "MemoryStore", "RateLimitStore", "create_store"]
