"""Environment overrides for the configuration file"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentSettings(BaseSettings):
    """Values read from ``ORDINALS_*`` environment variables or a ``.env`` file

    Order of precedence (highest first): environment variables, ``.env``,
    the TOML config file, built-in defaults.
    """

    env: Optional[str] = Field(default=None, description="development or production")
    network: Optional[str] = Field(default=None, description="mainnet, testnet or regtest")
    api_base_url: Optional[str] = Field(default=None, description="Override for the active base URL")
    api_token: Optional[str] = Field(default=None, description="Bearer token sent upstream")
    config_path: Optional[str] = Field(default=None, description="Path to config.toml")

    model_config = SettingsConfigDict(
        env_prefix="ORDINALS_",
        env_file=".env",
        extra="ignore",
    )
