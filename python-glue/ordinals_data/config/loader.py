"""Configuration loader"""

from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field, fields

import toml

from ..errors import ConfigError
from .settings import EnvironmentSettings

# Try to use tomllib (Python 3.11+) for reading, fallback to toml
try:
    import tomllib
    HAS_TOMLLIB = True
except ImportError:
    HAS_TOMLLIB = False

ENVIRONMENTS = ("development", "production")


@dataclass
class EndpointConfig:
    """Upstream endpoints for one environment"""
    base_url: str = "https://ordinals.com"
    block_info: str = "/r/blockinfo/{blockNumber}"
    inscription_content: str = "/content/{inscriptionId}"
    block_height: str = "/r/blockheight"
    rate_limit: int = 100  # requests per window
    timeout: float = 30.0  # per HTTP request, seconds


def _production_endpoint() -> EndpointConfig:
    return EndpointConfig(rate_limit=60, timeout=10.0)


@dataclass
class ApiConfig:
    """Upstream API configuration"""
    environment: str = "development"
    fetch_timeout: float = 60.0  # overall deadline for one fetch, seconds
    api_token: Optional[str] = None  # Read from ORDINALS_API_TOKEN, never saved
    development: EndpointConfig = field(default_factory=EndpointConfig)
    production: EndpointConfig = field(default_factory=_production_endpoint)

    def active(self) -> EndpointConfig:
        """Endpoints for the selected environment"""
        return self.production if self.environment == "production" else self.development


@dataclass
class CacheConfig:
    """Caching configuration (TTLs in seconds)"""
    max_entries: int = 1000
    default_ttl: float = 3600.0
    block_ttl: float = 3600.0
    inscription_ttl: float = 86400.0
    block_height_ttl: float = 30.0


@dataclass
class RetryConfig:
    """Retry configuration"""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_factor: float = 0.1


@dataclass
class CircuitBreakerConfig:
    """Circuit breaker configuration"""
    failure_threshold: int = 5
    cooldown: float = 30.0
    success_threshold: int = 1
    probe_count: int = 1


@dataclass
class RateLimitConfig:
    """Outbound rate limit; max_requests_per_window defaults to the endpoint's rate_limit"""
    max_requests_per_window: Optional[int] = None
    window: float = 60.0
    max_wait: float = 30.0


@dataclass
class ValidationConfig:
    """Block identifier validation"""
    min_block_height: int = 767430  # First Ordinals inscription block
    max_block_offset: int = 10  # Maximum blocks ahead of current tip


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class Config:
    """Main configuration"""
    network: str = "mainnet"
    api: ApiConfig = field(default_factory=ApiConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @property
    def max_requests_per_window(self) -> int:
        if self.rate_limit.max_requests_per_window is not None:
            return self.rate_limit.max_requests_per_window
        return self.api.active().rate_limit

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary"""
        config = cls()

        try:
            if "network" in data:
                config.network = data["network"]

            if "api" in data:
                api_data = dict(data["api"])
                development = api_data.pop("development", None)
                production = api_data.pop("production", None)
                api_data.pop("api_token", None)
                config.api = ApiConfig(**api_data)
                if development is not None:
                    config.api.development = EndpointConfig(**development)
                if production is not None:
                    config.api.production = EndpointConfig(**{
                        "rate_limit": 60, "timeout": 10.0, **production,
                    })

            if "cache" in data:
                config.cache = CacheConfig(**data["cache"])

            if "retry" in data:
                config.retry = RetryConfig(**data["retry"])

            if "circuit_breaker" in data:
                config.circuit_breaker = CircuitBreakerConfig(**data["circuit_breaker"])

            if "rate_limit" in data:
                config.rate_limit = RateLimitConfig(**data["rate_limit"])

            if "validation" in data:
                config.validation = ValidationConfig(**data["validation"])

            if "server" in data:
                config.server = ServerConfig(**data["server"])
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key: {e}") from e

        return config

    def to_dict(self) -> dict:
        """Convert Config to dictionary (None values and secrets are omitted)"""
        def section(obj) -> dict:
            return {
                f.name: getattr(obj, f.name)
                for f in fields(obj)
                if getattr(obj, f.name) is not None
            }

        api = {
            "environment": self.api.environment,
            "fetch_timeout": self.api.fetch_timeout,
            "development": section(self.api.development),
            "production": section(self.api.production),
        }

        return {
            "network": self.network,
            "api": api,
            "cache": section(self.cache),
            "retry": section(self.retry),
            "circuit_breaker": section(self.circuit_breaker),
            "rate_limit": section(self.rate_limit),
            "validation": section(self.validation),
            "server": section(self.server),
        }

    def validate(self) -> "Config":
        """Fail fast on bounds that would make the client unusable"""
        if self.api.environment not in ENVIRONMENTS:
            raise ConfigError(
                f"api.environment must be one of {ENVIRONMENTS}, got {self.api.environment!r}"
            )

        positive = {
            "api.fetch_timeout": self.api.fetch_timeout,
            "cache.max_entries": self.cache.max_entries,
            "cache.default_ttl": self.cache.default_ttl,
            "cache.block_ttl": self.cache.block_ttl,
            "cache.inscription_ttl": self.cache.inscription_ttl,
            "cache.block_height_ttl": self.cache.block_height_ttl,
            "retry.max_attempts": self.retry.max_attempts,
            "retry.base_delay": self.retry.base_delay,
            "retry.max_delay": self.retry.max_delay,
            "circuit_breaker.failure_threshold": self.circuit_breaker.failure_threshold,
            "circuit_breaker.cooldown": self.circuit_breaker.cooldown,
            "circuit_breaker.success_threshold": self.circuit_breaker.success_threshold,
            "circuit_breaker.probe_count": self.circuit_breaker.probe_count,
            "rate_limit.max_requests_per_window": self.max_requests_per_window,
            "rate_limit.window": self.rate_limit.window,
        }
        for env in ENVIRONMENTS:
            endpoint = getattr(self.api, env)
            positive[f"api.{env}.rate_limit"] = endpoint.rate_limit
            positive[f"api.{env}.timeout"] = endpoint.timeout

        for name, value in positive.items():
            if value is None or value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")

        if self.retry.jitter_factor < 0:
            raise ConfigError(f"retry.jitter_factor must not be negative, got {self.retry.jitter_factor}")
        if self.rate_limit.max_wait < 0:
            raise ConfigError(f"rate_limit.max_wait must not be negative, got {self.rate_limit.max_wait}")
        if self.validation.min_block_height < 0 or self.validation.max_block_offset < 0:
            raise ConfigError("validation bounds must not be negative")

        return self


def get_config_path() -> Path:
    """Get path to config file"""
    config_dir = Path.home() / ".ordinals-data"
    return config_dir / "config.toml"


def apply_environment(config: Config, settings: Optional[EnvironmentSettings] = None) -> Config:
    """Overlay ORDINALS_* environment variables onto a loaded config"""
    settings = settings or EnvironmentSettings()

    if settings.env:
        config.api.environment = settings.env.lower()
    if settings.network:
        config.network = settings.network
    if settings.api_base_url:
        config.api.active().base_url = settings.api_base_url
    if settings.api_token:
        config.api.api_token = settings.api_token

    return config


def load_config(
    config_path: Optional[Path] = None,
    settings: Optional[EnvironmentSettings] = None,
) -> Config:
    """Load configuration from file"""
    settings = settings or EnvironmentSettings()

    if config_path is None:
        config_path = Path(settings.config_path) if settings.config_path else get_config_path()

    # Expand user directory
    config_path = Path(config_path).expanduser()

    # Create default config if file doesn't exist
    if not config_path.exists():
        config = Config()
        save_config(config, config_path)
    else:
        if HAS_TOMLLIB:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        else:
            with open(config_path, "r") as f:
                data = toml.load(f)
        config = Config.from_dict(data)

    return apply_environment(config, settings).validate()


def save_config(config: Config, config_path: Optional[Path] = None) -> None:
    """Save configuration to file"""
    if config_path is None:
        config_path = get_config_path()

    config_path = Path(config_path).expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.to_dict()

    with open(config_path, "w") as f:
        toml.dump(data, f)
