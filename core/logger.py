#!/usr/bin/env python3
"""
Service Logger Setup

Configures stdlib logging for a microservice from LoggingConfig.

Usage:
    from core.logger import setup_service_logger

    logger = setup_service_logger("booking_service")
    logger.info("Service started")
"""

import logging
import os
import sys
from typing import List, Optional

from core.config import LoggingConfig, get_settings

_configured_services = set()
_package_handlers_installed = False


def _build_handlers(config: LoggingConfig) -> List[logging.Handler]:
    formatter = logging.Formatter(config.log_format)
    handlers: List[logging.Handler] = []

    if config.enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if config.log_file:
        log_dir = os.path.dirname(config.log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    return handlers


def setup_service_logger(
    service_name: str,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Create (or return) the logger for a service.

    Module loggers under ``microservices`` and ``core`` are attached to the
    same handlers the first time any service logger is configured.

    Args:
        service_name: Service name, used as the logger name
        config: Logging configuration (defaults to global settings)

    Returns:
        Configured logger
    """
    global _package_handlers_installed

    logger = logging.getLogger(service_name)
    if service_name in _configured_services:
        return logger

    config = config or get_settings().logging
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logger.setLevel(level)
    logger.propagate = False
    for handler in _build_handlers(config):
        logger.addHandler(handler)

    if not _package_handlers_installed:
        package_handlers = _build_handlers(config)
        for name in ("microservices", "core"):
            package_logger = logging.getLogger(name)
            package_logger.setLevel(level)
            package_logger.propagate = False
            for handler in package_handlers:
                package_logger.addHandler(handler)
        _package_handlers_installed = True

    _configured_services.add(service_name)
    logger.debug(f"Logger configured for {service_name} ({config.environment})")
    return logger
