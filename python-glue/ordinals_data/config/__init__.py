"""Configuration management"""

from .loader import (
    Config,
    ApiConfig,
    EndpointConfig,
    CacheConfig,
    RetryConfig,
    CircuitBreakerConfig,
    RateLimitConfig,
    ValidationConfig,
    ServerConfig,
    load_config,
    save_config,
    get_config_path,
    apply_environment,
)
from .settings import EnvironmentSettings

__all__ = [
    "Config",
    "ApiConfig",
    "EndpointConfig",
    "CacheConfig",
    "RetryConfig",
    "CircuitBreakerConfig",
    "RateLimitConfig",
    "ValidationConfig",
    "ServerConfig",
    "load_config",
    "save_config",
    "get_config_path",
    "apply_environment",
    "EnvironmentSettings",
]
