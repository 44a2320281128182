"""
Configuration for the cache engine, its background workers and the HTTP layer.

The config is a plain value handed to every component's constructor; there is
no module-level instance.
"""
import os
from dataclasses import dataclass, asdict, replace as dc_replace
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from cachelayer.exceptions import ConfigError
from cachelayer.eviction.base import EvictionPolicy

# env var -> (field, parser)
_ENV_FIELDS = {
    "MAX_MEMORY_MB": ("max_memory_mb", float),
    "DEFAULT_TTL_SECONDS": ("default_ttl", int),
    "CLEANUP_INTERVAL_MS": ("cleanup_interval_ms", int),
    "EVICTION_POLICY": ("eviction_policy", str),
    "HOST": ("host", str),
    "PORT": ("port", int),
    "LOG_LEVEL": ("log_level", str),
    "RATE_LIMIT_WINDOW_SECONDS": ("rate_limit_window_seconds", int),
    "RATE_LIMIT_MAX_REQUESTS": ("rate_limit_max_requests", int),
    "STATS_REPORT_INTERVAL_MS": ("stats_report_interval_ms", int),
}


@dataclass(frozen=True)
class CacheConfig:
    max_memory_mb: float = 100
    default_ttl: int = 3600             # seconds, 0 = entries never expire
    cleanup_interval_ms: int = 60000
    eviction_policy: str = EvictionPolicy.LRU.value
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 1000
    stats_report_interval_ms: int = 300000

    def __post_init__(self):
        self.validate()

    @property
    def max_memory_bytes(self) -> int:
        return int(self.max_memory_mb * 1024 * 1024)

    def validate(self) -> None:
        """
        Raise ConfigError on the first out-of-range value.
        """
        if self.max_memory_mb <= 0:
            raise ConfigError("max_memory_mb must be greater than 0")
        if self.max_memory_bytes < 1:
            raise ConfigError(f"max_memory_mb={self.max_memory_mb} is less than one byte")
        if self.default_ttl < 0:
            raise ConfigError("default_ttl must be non-negative")
        if self.cleanup_interval_ms <= 0:
            raise ConfigError("cleanup_interval_ms must be greater than 0")
        if self.eviction_policy not in {p.value for p in EvictionPolicy}:
            raise ConfigError(f"Invalid eviction policy: {self.eviction_policy}")
        if not 1 <= self.port <= 65535:
            raise ConfigError("port must be between 1 and 65535")
        if self.rate_limit_window_seconds <= 0 or self.rate_limit_max_requests <= 0:
            raise ConfigError("rate limit window and max requests must be greater than 0")
        if self.stats_report_interval_ms <= 0:
            raise ConfigError("stats_report_interval_ms must be greater than 0")

    def replace(self, **changes: Any) -> "CacheConfig":
        """
        Return a validated copy with `changes` applied.
        """
        return dc_replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None, dotenv: bool = True) -> "CacheConfig":
        """
        Build the config from environment variables (and a .env file when present).
        """
        if dotenv:
            load_dotenv()
        environ = os.environ if environ is None else environ

        values: Dict[str, Any] = {}
        for env_name, (field_name, parse) in _ENV_FIELDS.items():
            raw = environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            try:
                values[field_name] = parse(raw.strip())
            except ValueError:
                raise ConfigError(f"{env_name} has an invalid value: {raw!r}") from None

        if "eviction_policy" in values:
            values["eviction_policy"] = values["eviction_policy"].lower()
        if "log_level" in values:
            values["log_level"] = values["log_level"].upper()
        return cls(**values)
