"""Configuration management for the LabourLink client"""
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv


DEFAULT_API_BASE_URL = "http://localhost:3000/api"


class ApiConfig(BaseModel):
    base_url: str = DEFAULT_API_BASE_URL
    timeout_seconds: float = 30.0


class NotificationsConfig(BaseModel):
    enabled: bool = True
    poll_interval_seconds: int = 5


class EstimatorConfig(BaseModel):
    enabled: bool = True
    base_url: str = "https://estimator-agent.fly.dev"
    app_name: str = "adk_agent"
    user_id: str = "user"
    timeout_seconds: float = 120.0


class KnownUsersConfig(BaseModel):
    file: str = "state/known_users.json"


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file: str = "logs/labourlink.log"
    max_size_mb: int = 10
    backup_count: int = 5


class AppConfig(BaseModel):
    api: ApiConfig = ApiConfig()
    notifications: NotificationsConfig = NotificationsConfig()
    estimator: EstimatorConfig = EstimatorConfig()
    known_users: KnownUsersConfig = KnownUsersConfig()
    logging: LoggingConfig = LoggingConfig()

    @property
    def api_base_url(self) -> str:
        """Base URL with trailing slashes stripped"""
        return self.api.base_url.rstrip("/")


class Credentials(BaseSettings):
    """Environment-based settings"""
    api_base_url: str = Field(default="", alias="LABOURLINK_API_BASE_URL")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


def get_project_root() -> Path:
    """Get the project root directory"""
    return Path(__file__).parent.parent


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load configuration from YAML file, applying environment overrides"""
    if config_path is None:
        config_path = get_project_root() / "config" / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        config_dict = yaml.safe_load(f) or {}

    config = AppConfig(**config_dict)

    credentials = get_credentials()
    if credentials.api_base_url:
        config.api.base_url = credentials.api_base_url

    return config


def load_credentials() -> Credentials:
    """Load credentials from environment"""
    env_path = get_project_root() / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    return Credentials()


# Global instances
_config: Optional[AppConfig] = None
_credentials: Optional[Credentials] = None


def get_config() -> AppConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_credentials() -> Credentials:
    """Get the global credentials instance"""
    global _credentials
    if _credentials is None:
        _credentials = load_credentials()
    return _credentials


def reset_config():
    """Drop cached configuration so the next get_config() reloads it"""
    global _config, _credentials
    _config = None
    _credentials = None
