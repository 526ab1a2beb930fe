"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import List


class PanelConfig(BaseSettings):
    """Banking panel configuration"""
    
    # Managed backend configuration
    backend_mode: str = "memory"  # memory or rest
    backend_url: str = ""
    backend_service_key: str = ""  # Service role key, server side only
    backend_timeout: float = 10.0
    
    # Token configuration (must match the backend's JWT secret in rest mode)
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiry_hours: int = 24
    
    # Staff provisioning
    profile_trigger_enabled: bool = False  # Backend trigger inserts the profile row
    profile_trigger_delay_ms: int = 100
    require_admin_for_provisioning: bool = True
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    cors_origins: List[str] = ["*"]
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Local admin seeded in memory mode
    bootstrap_admin_email: str = "admin@bankingpanel.local"
    bootstrap_admin_password: str = "admin12345"
    bootstrap_admin_name: str = "Panel Administrator"
    
    class Config:
        env_prefix = "PANEL_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = PanelConfig()


def get_config() -> PanelConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> PanelConfig:
    """Reload configuration from environment"""
    global config
    config = PanelConfig()
    return config
