#!/usr/bin/env python3
"""Shipping platform main configuration

Combines all sub-configs for the shipping microservices.
"""
import os
from dataclasses import dataclass, field

from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .pricing_config import PricingConfig
from .service_config import ServiceConfig


def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


# Notifications for unauthenticated bookings are addressed to this id
ADMIN_PLACEHOLDER_USER_ID = "00000000-0000-0000-0000-000000000000"


@dataclass
class ShippingConfig:
    """Main shipping platform configuration with all sub-configs"""

    # Environment
    environment: str = "development"
    debug: bool = False

    # Default service settings (each microservice overrides the port)
    default_host: str = "0.0.0.0"
    default_port: int = 8000

    admin_user_id: str = ADMIN_PLACEHOLDER_USER_ID

    # Sub-configurations
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    services: ServiceConfig = field(default_factory=ServiceConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)

    @classmethod
    def from_env(cls) -> 'ShippingConfig':
        """Load complete configuration from environment"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            environment=env,
            debug=_bool(os.getenv("DEBUG", "true" if env == "development" else "false")),
            default_host=os.getenv("HOST", "0.0.0.0"),
            default_port=_int(os.getenv("PORT", "8000"), 8000),
            admin_user_id=os.getenv("ADMIN_PLACEHOLDER_USER_ID", ADMIN_PLACEHOLDER_USER_ID),
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            services=ServiceConfig.from_env(),
            pricing=PricingConfig.from_env(),
        )
