#!/usr/bin/env python3
"""Modular configuration system for the shipping platform

Configuration hierarchy:
- infra_config: Infrastructure services (PostgreSQL, NATS)
- service_config: Microservice ports and external collaborators
- pricing_config: Rate table and settlement policy defaults
- logging_config: Logging configuration
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .service_config import ServiceConfig
from .pricing_config import PricingConfig
from .shipping_config import ShippingConfig, ADMIN_PLACEHOLDER_USER_ID

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = ShippingConfig.from_env()

def get_settings() -> ShippingConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> ShippingConfig:
    """Reload settings from environment"""
    global settings
    settings = ShippingConfig.from_env()
    return settings

__all__ = [
    # Main config
    'ShippingConfig',
    'get_settings',
    'reload_settings',
    'settings',
    'ADMIN_PLACEHOLDER_USER_ID',
    # Sub-configs
    'LoggingConfig',
    'InfraConfig',
    'ServiceConfig',
    'PricingConfig',
]
