"""Configuration management with Pydantic settings."""

import os
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
import yaml

TRUTHY = ("true", "1", "yes", "on")


class EmailConfig(BaseModel):
    """SMTP settings for owner alerts."""
    enabled: bool = False
    test_mode: bool = False
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_use_tls: bool = False
    smtp_start_tls: bool = True
    smtp_user: str = ""
    smtp_password: str = ""
    from_addr: str = "postmaster@localhost"
    from_name: str = "Uptime Monitor"
    timeout: int = 30

    @field_validator('smtp_port')
    @classmethod
    def smtp_port_must_be_valid(cls, v):
        if not (1 <= v <= 65535):
            raise ValueError('SMTP port must be between 1 and 65535')
        return v

    @field_validator('smtp_host', 'from_addr')
    @classmethod
    def required_if_enabled(cls, v, info):
        if info.data.get('enabled') and not v:
            raise ValueError(f'{info.field_name} must be set when email notifications are enabled')
        return v


class NotificationsConfig(BaseModel):
    """Notifications configuration."""
    enabled: bool = True
    email: EmailConfig = Field(default_factory=EmailConfig)


class DatabaseConfig(BaseModel):
    """Database configuration."""
    type: str = "sqlite"
    url: str = "sqlite+aiosqlite:///./data/uptime_monitor.db"
    echo: bool = False

    @field_validator('type')
    @classmethod
    def database_type_must_be_supported(cls, v):
        supported = ['sqlite', 'postgresql', 'mysql']
        if v not in supported:
            raise ValueError(f'database type must be one of {supported}')
        return v


class MonitoringConfig(BaseModel):
    """Sweep and probe settings."""
    interval_ms: int = 5 * 60 * 1000
    probe_timeout: float = 30.0
    max_redirects: int = 5
    check_delay: float = 1.0
    user_agent: str = "Uptime-Monitor/1.0"

    @field_validator('interval_ms')
    @classmethod
    def interval_must_be_positive(cls, v):
        if v < 1000:
            raise ValueError('interval_ms must be at least 1000')
        return v

    @field_validator('probe_timeout')
    @classmethod
    def timeout_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError('probe_timeout must be positive')
        return v

    @field_validator('max_redirects', 'check_delay')
    @classmethod
    def must_be_non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f'{info.field_name} must be non-negative')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "json"
    file: Optional[str] = "logs/uptime_monitor.log"
    console: bool = True

    @field_validator('level')
    @classmethod
    def log_level_must_be_valid(cls, v):
        if isinstance(v, str):
            v = v.upper()
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v not in valid_levels:
            raise ValueError(f'log level must be one of {valid_levels}')
        return v


class PrometheusConfig(BaseModel):
    """Prometheus metrics configuration."""
    enabled: bool = True


class CORSConfig(BaseModel):
    """CORS configuration."""
    enabled: bool = True
    allow_origins: List[str] = Field(default_factory=lambda: ["*"])
    allow_credentials: bool = True
    allow_methods: List[str] = Field(default_factory=lambda: ["*"])
    allow_headers: List[str] = Field(default_factory=lambda: ["*"])


class APIConfig(BaseModel):
    """API server configuration."""
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    cors: CORSConfig = Field(default_factory=CORSConfig)

    @field_validator('port')
    @classmethod
    def port_must_be_valid(cls, v):
        if not (1 <= v <= 65535):
            raise ValueError('port must be between 1 and 65535')
        return v


class Config(BaseModel):
    """Main configuration class."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    prometheus: PrometheusConfig = Field(default_factory=PrometheusConfig)
    api: APIConfig = Field(default_factory=APIConfig)


def _apply_env_overrides(config: Config) -> None:
    """Override loaded values with environment variables."""
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        config.database.url = database_url

    log_level = os.getenv("LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    interval = os.getenv("MONITORING_INTERVAL")
    if interval:
        try:
            config.monitoring.interval_ms = int(interval)
        except ValueError:
            raise ValueError(f"MONITORING_INTERVAL must be an integer (ms), got {interval!r}")

    email = config.notifications.email

    test_mode = os.getenv("EMAIL_TEST_MODE")
    if test_mode is not None:
        email.test_mode = test_mode.lower() in TRUTHY

    smtp_host = os.getenv("SMTP_HOST")
    if smtp_host:
        email.smtp_host = smtp_host
        email.enabled = True

    smtp_port = os.getenv("SMTP_PORT")
    if smtp_port:
        email.smtp_port = int(smtp_port)

    smtp_user = os.getenv("SMTP_USER")
    if smtp_user:
        email.smtp_user = smtp_user

    smtp_password = os.getenv("SMTP_PASSWORD")
    if smtp_password:
        email.smtp_password = smtp_password

    smtp_from = os.getenv("SMTP_FROM")
    if smtp_from:
        email.from_addr = smtp_from


def load_config() -> Config:
    """
    Load configuration from YAML file and environment variables.

    Returns:
        Config: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist outside development
        ValueError: If config file or environment values are invalid
    """
    app_env = os.getenv("APP_ENV", "development")
    config_path = os.getenv("CONFIG_PATH", "config/config.yaml")

    config_data = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file {config_path}: {e}")
    elif app_env != "development":
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        config = Config(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

    _apply_env_overrides(config)

    if config.monitoring.interval_ms < 1000:
        raise ValueError("MONITORING_INTERVAL must be at least 1000 ms")

    return config
